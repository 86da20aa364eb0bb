"""
Key path parsing and formatting.

A key path addresses one value inside a nested JSON document. Two string
dialects are supported:

- ``Dialect.DOTTED``:    ``navigation.items.0.label``
- ``Dialect.BRACKETED``: ``navigation.items[0].label``

The bracketed dialect is unambiguous: ``[0]`` is always a sequence index and
every dotted component is a mapping key. In the dotted dialect an all-digit
component could be either, so it is parsed as a ``NUMERIC`` segment and its
meaning is decided when the path is walked against a real document:
against a list it is an index, against a dict it is the string key.

Path strings have no escape syntax. A mapping key that is empty or contains
``.`` or ``[`` formats to a string that does not parse back, so such keys
are only addressable through ``KeyPath`` objects, which is what the key
enumerator yields.

Usage:
    >>> path = parse_path("matrix[0][1]", Dialect.BRACKETED)
    >>> [s.value for s in path]
    ['matrix', 0, 1]
    >>> str(path)
    'matrix[0][1]'
    >>> convert_path("items[2]", Dialect.BRACKETED, Dialect.DOTTED)
    'items.2'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional, Union


_DIGITS = re.compile(r"[0-9]+")


class MalformedPathError(ValueError):
    """Raised when a path string cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Malformed key path {path!r}: {reason}")
        self.path = path
        self.reason = reason


class Dialect(str, Enum):
    """Serialization style of a key path."""
    DOTTED = "dotted"
    BRACKETED = "bracketed"


class SegmentKind(str, Enum):
    NAME = "name"
    INDEX = "index"
    NUMERIC = "numeric"  # dotted-dialect digits, resolved at traversal time


@dataclass(frozen=True)
class Segment:
    """One step of a key path.

    Attributes:
        value: Mapping key (str) for NAME and NUMERIC, position (int) for INDEX
        kind: What the value addresses
    """
    value: Union[str, int]
    kind: SegmentKind = SegmentKind.NAME

    def __post_init__(self):
        if self.kind is SegmentKind.INDEX:
            if isinstance(self.value, bool) or not isinstance(self.value, int):
                raise MalformedPathError(str(self.value), "index must be an integer")
            if self.value < 0:
                raise MalformedPathError(str(self.value), "index must be non-negative")
        elif not isinstance(self.value, str):
            raise MalformedPathError(str(self.value), "name must be a string")
        elif self.kind is SegmentKind.NUMERIC and not _DIGITS.fullmatch(self.value):
            raise MalformedPathError(self.value, "numeric segment must be all digits")

    @classmethod
    def name(cls, value: str) -> "Segment":
        return cls(value, SegmentKind.NAME)

    @classmethod
    def index(cls, value: int) -> "Segment":
        return cls(value, SegmentKind.INDEX)

    @classmethod
    def numeric(cls, value: Union[str, int]) -> "Segment":
        return cls(str(value), SegmentKind.NUMERIC)

    @property
    def is_index(self) -> bool:
        return self.kind is SegmentKind.INDEX

    @property
    def is_index_like(self) -> bool:
        """True for segments that create a list when the container is missing."""
        return self.kind is not SegmentKind.NAME


@dataclass(frozen=True)
class KeyPath:
    """An ordered, non-empty sequence of segments bound to a dialect."""
    segments: tuple[Segment, ...]
    dialect: Dialect = Dialect.BRACKETED

    def __post_init__(self):
        if not self.segments:
            raise MalformedPathError("", "path must have at least one segment")

    @classmethod
    def parse(cls, text: str, dialect: Dialect = Dialect.BRACKETED) -> "KeyPath":
        return parse_path(text, dialect)

    def child(self, segment: Segment) -> "KeyPath":
        return KeyPath(self.segments + (segment,), self.dialect)

    def to_dialect(self, dialect: Dialect) -> "KeyPath":
        """Re-bind to another dialect, adapting index segments to it."""
        if dialect is self.dialect:
            return self
        return KeyPath(tuple(_adapt(s, dialect) for s in self.segments), dialect)

    @property
    def leaf(self) -> Segment:
        return self.segments[-1]

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return format_path(self.segments, self.dialect)


PathLike = Union[KeyPath, str]

_INDEX_GROUP = re.compile(r"\[([0-9]+)\]")


def parse_path(text: str, dialect: Dialect = Dialect.BRACKETED) -> KeyPath:
    """Parse a path string into a KeyPath.

    Raises:
        MalformedPathError: If the string is not a valid path in ``dialect``
    """
    if not isinstance(text, str) or text == "":
        raise MalformedPathError(str(text), "path is empty")

    dialect = Dialect(dialect)
    if dialect is Dialect.DOTTED:
        segments = _parse_dotted(text)
    else:
        segments = _parse_bracketed(text)
    return KeyPath(tuple(segments), dialect)


def try_parse_path(text: str, dialect: Dialect = Dialect.BRACKETED) -> Optional[KeyPath]:
    """Like parse_path, but returns None instead of raising."""
    try:
        return parse_path(text, dialect)
    except MalformedPathError:
        return None


def _parse_dotted(text: str) -> list[Segment]:
    segments = []
    for part in text.split("."):
        if part == "":
            raise MalformedPathError(text, "empty path component")
        if _DIGITS.fullmatch(part):
            segments.append(Segment.numeric(part))
        else:
            segments.append(Segment.name(part))
    return segments


def _parse_bracketed(text: str) -> list[Segment]:
    segments: list[Segment] = []
    for position, part in enumerate(text.split(".")):
        if part == "":
            raise MalformedPathError(text, "empty path component")

        bracket = part.find("[")
        if bracket == -1:
            if "]" in part:
                raise MalformedPathError(text, f"unbalanced ']' in {part!r}")
            segments.append(Segment.name(part))
            continue

        head, tail = part[:bracket], part[bracket:]
        if "]" in head:
            raise MalformedPathError(text, f"unbalanced ']' in {part!r}")
        if head:
            segments.append(Segment.name(head))
        elif position > 0:
            # "a.[0]" has nothing between the dot and the bracket
            raise MalformedPathError(text, "index group without a name")

        consumed = 0
        for match in _INDEX_GROUP.finditer(tail):
            if match.start() != consumed:
                break
            segments.append(Segment.index(int(match.group(1))))
            consumed = match.end()
        if consumed != len(tail):
            raise MalformedPathError(text, f"invalid index syntax in {part!r}")
    return segments


def format_path(segments: Iterable[Segment], dialect: Dialect = Dialect.BRACKETED) -> str:
    """Serialize segments in the given dialect."""
    dialect = Dialect(dialect)
    out: list[str] = []
    for segment in segments:
        if dialect is Dialect.DOTTED:
            if out:
                out.append(".")
            out.append(str(segment.value))
        elif segment.is_index:
            out.append(f"[{segment.value}]")
        else:
            if out:
                out.append(".")
            out.append(str(segment.value))
    if not out:
        raise MalformedPathError("", "path must have at least one segment")
    return "".join(out)


def convert_path(text: str, source: Dialect, target: Dialect) -> str:
    """Re-serialize a path string from one dialect to another.

    Dotted all-digit components become bracketed indices, which matches how
    the enumerator would have written the same leaf in the bracketed dialect.
    """
    return str(parse_path(text, source).to_dialect(Dialect(target)))


def ensure_path(path: PathLike, dialect: Dialect = Dialect.BRACKETED) -> KeyPath:
    """Accept a KeyPath or a string; strings are parsed strictly."""
    if isinstance(path, KeyPath):
        return path
    return parse_path(path, dialect)


def _adapt(segment: Segment, dialect: Dialect) -> Segment:
    if dialect is Dialect.DOTTED and segment.kind is SegmentKind.INDEX:
        return Segment.numeric(segment.value)
    if dialect is Dialect.BRACKETED and segment.kind is SegmentKind.NUMERIC:
        return Segment.index(int(segment.value))
    return segment
