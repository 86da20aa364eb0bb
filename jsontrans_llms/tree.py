"""
Enumeration, reads and writes on nested JSON documents.

A document ("tree") is any mix of dicts, lists and scalars as produced by
``json.load``. This module treats it as a flat address space:

- enumerate_keys(): every leaf as a KeyPath, depth-first, in document order
- get_value():      read a leaf or container, NOT_FOUND when absent
- set_value():      write a value, building or converting containers on the way
- key_exists():     get_value(...) is not NOT_FOUND

Sparse lists:
    Python lists cannot have gaps, so writing ``items[5]`` into an empty list
    pads positions 0-4 with the HOLE placeholder. Holes are skipped by the
    enumerator, read as NOT_FOUND and are written to JSON as ``null``.

Resolution of dotted numeric segments:
    A NUMERIC segment ("items.0") is an index when the container at that
    point is a list and a string key when it is a dict. When set_value has to
    create the container, it creates a list.

Destructive writes:
    Writing through an INDEX segment where a dict currently sits replaces the
    dict with a new list, dropping its entries. NAME segments through a list
    or scalar behave the same way in the other direction. Callers that must
    keep such data should check key_exists() first.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterator, Optional

from jsontrans_llms.paths import (
    Dialect,
    KeyPath,
    PathLike,
    Segment,
    SegmentKind,
    ensure_path,
    try_parse_path,
)


class _NotFoundType:
    """Type of the NOT_FOUND sentinel."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __reduce__(self):
        return (_NotFoundType, ())


class _HoleType:
    """Type of the HOLE placeholder used for gaps in sparse lists."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "HOLE"

    def __reduce__(self):
        return (_HoleType, ())


NOT_FOUND = _NotFoundType()
HOLE = _HoleType()


class CyclicStructureError(ValueError):
    """Raised when a document contains a reference back to one of its ancestors."""

    def __init__(self, path: Optional[KeyPath]):
        where = str(path) if path is not None else "<root>"
        super().__init__(f"Cyclic reference detected at {where}")
        self.path = path


def is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_container(value: Any) -> bool:
    return is_mapping(value) or is_sequence(value)


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------

def _children(
    container: Any,
    dialect: Dialect,
    exclude_keys: frozenset,
) -> Iterator[tuple[Segment, Any]]:
    if is_mapping(container):
        for key, value in container.items():
            if key in exclude_keys:
                continue
            yield Segment.name(str(key)), value
    else:
        make = Segment.numeric if dialect is Dialect.DOTTED else Segment.index
        for i, value in enumerate(container):
            if value is HOLE:
                continue
            yield make(i), value


def iter_keys(
    tree: Any,
    dialect: Dialect = Dialect.BRACKETED,
    exclude_keys: Optional[Any] = None,
) -> Iterator[KeyPath]:
    """Yield the path of every leaf in ``tree``, depth-first.

    Uses an explicit stack, so arbitrarily deep documents do not hit the
    interpreter recursion limit.

    Raises:
        CyclicStructureError: If a container is reached again while it is
            still being visited
    """
    dialect = Dialect(dialect)
    excluded = frozenset(exclude_keys or ())
    if not is_container(tree):
        return

    # Each frame: (container id, children iterator, path to the container)
    visiting = {id(tree)}
    stack: list[tuple[int, Iterator[tuple[Segment, Any]], Optional[KeyPath]]] = [
        (id(tree), _children(tree, dialect, excluded), None)
    ]

    while stack:
        container_id, children, prefix = stack[-1]
        step = next(children, None)
        if step is None:
            stack.pop()
            visiting.discard(container_id)
            continue

        segment, value = step
        path = prefix.child(segment) if prefix is not None else KeyPath((segment,), dialect)

        if is_container(value):
            if id(value) in visiting:
                raise CyclicStructureError(path)
            visiting.add(id(value))
            stack.append((id(value), _children(value, dialect, excluded), path))
        else:
            yield path


def enumerate_keys(
    tree: Any,
    dialect: Dialect = Dialect.BRACKETED,
    exclude_keys: Optional[Any] = None,
) -> list[KeyPath]:
    """Return the path of every leaf in ``tree``.

    Empty lists and dicts contribute nothing. Values that are not JSON types
    are reported as leaves without being inspected.

    Example:
        >>> [str(p) for p in enumerate_keys({"nav": {"home": "Home"}, "tags": ["a"]})]
        ['nav.home', 'tags[0]']
    """
    return list(iter_keys(tree, dialect, exclude_keys))


def get_all_keys(
    tree: Any,
    dialect: Dialect = Dialect.BRACKETED,
    exclude_keys: Optional[Any] = None,
) -> list[str]:
    """enumerate_keys() rendered as strings."""
    return [str(path) for path in iter_keys(tree, dialect, exclude_keys)]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _step(node: Any, segment: Segment) -> Any:
    if is_mapping(node):
        if segment.kind is SegmentKind.INDEX:
            return NOT_FOUND
        return node.get(segment.value, NOT_FOUND)

    if is_sequence(node):
        if segment.kind is SegmentKind.NAME:
            return NOT_FOUND
        index = int(segment.value)
        if 0 <= index < len(node):
            value = node[index]
            return NOT_FOUND if value is HOLE else value
        return NOT_FOUND

    return NOT_FOUND


def get_value(root: Any, path: PathLike, dialect: Dialect = Dialect.BRACKETED) -> Any:
    """Read the value at ``path``; returns NOT_FOUND rather than raising.

    A stored ``None`` is returned as ``None`` and is distinct from NOT_FOUND.
    Unparseable path strings read as NOT_FOUND.
    """
    if isinstance(path, KeyPath):
        key_path = path
    else:
        key_path = try_parse_path(path, dialect)
        if key_path is None:
            return NOT_FOUND

    node = root
    for segment in key_path:
        node = _step(node, segment)
        if node is NOT_FOUND:
            return NOT_FOUND
    return node


def key_exists(root: Any, path: PathLike, dialect: Dialect = Dialect.BRACKETED) -> bool:
    return get_value(root, path, dialect) is not NOT_FOUND


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _fit_container(node: Any, segment: Segment) -> Any:
    """Return ``node`` if it can hold ``segment``, else a fresh container."""
    if segment.kind is SegmentKind.NAME:
        return node if isinstance(node, dict) else {}
    if isinstance(node, list):
        return node
    if segment.kind is SegmentKind.NUMERIC and isinstance(node, dict):
        return node
    return []


def _slot(container: Any, segment: Segment) -> Any:
    if isinstance(container, dict):
        return str(segment.value)
    index = int(segment.value)
    if index >= len(container):
        container.extend([HOLE] * (index + 1 - len(container)))
    return index


def set_value(
    root: Any,
    path: PathLike,
    value: Any,
    dialect: Dialect = Dialect.BRACKETED,
) -> Any:
    """Write ``value`` at ``path`` and return the (possibly new) root.

    Missing intermediate containers are created according to the kind of
    the segment that will index into them. Containers of the wrong kind are
    replaced, including the root itself, which is why the caller must use
    the returned object:

        >>> doc = set_value({}, "items[0]", "first")
        >>> doc = set_value(doc, "items[1]", "second")
        >>> doc
        {'items': ['first', 'second']}
        >>> set_value({"a": 1}, "[0]", "x")
        ['x']

    Tuples and read-only mappings are treated like scalars and replaced.

    Raises:
        MalformedPathError: If ``path`` is a string that cannot be parsed
    """
    key_path = ensure_path(path, dialect)

    holder = [root]
    parent: Any = holder
    parent_slot: Any = 0
    segments = key_path.segments
    for position, segment in enumerate(segments):
        if isinstance(parent, dict):
            current = parent.get(parent_slot)
        else:
            current = parent[parent_slot]
        fitted = _fit_container(current, segment)
        if fitted is not current:
            parent[parent_slot] = fitted

        slot = _slot(fitted, segment)
        if position == len(segments) - 1:
            fitted[slot] = value
        else:
            parent, parent_slot = fitted, slot
    return holder[0]
