"""
Template/target comparison.

Given the template document (the source language) and a target document
(one translation), this module answers:

- which template leaves the target lacks (missing keys)
- which target leaves the template does not define (extra keys)
- which keys must be (re)translated: missing keys plus the keys the template
  author flagged as changed

Flagging changed keys:
    A template object may carry an ``__updated_keys__`` list naming sibling
    keys whose source text changed since the last run:

        {"hero": {"title": "New title", "__updated_keys__": ["title"]}}

    ``hero.title`` is then re-translated even though every target already
    has it. The marker itself is never compared or translated.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from jsontrans_llms.paths import Dialect, KeyPath, Segment, ensure_path
from jsontrans_llms.tree import is_mapping, is_sequence, iter_keys, key_exists


UPDATED_KEYS_MARKER = "__updated_keys__"
DEFAULT_EXCLUDED_KEYS = frozenset({UPDATED_KEYS_MARKER})


@dataclass
class DiffResult:
    """Missing and extra leaf paths of a target relative to its template."""
    missing: list[KeyPath] = field(default_factory=list)
    extra: list[KeyPath] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not self.missing and not self.extra


@dataclass
class KeysToTranslate:
    """Keys scheduled for translation in one target document."""
    missing: list[KeyPath] = field(default_factory=list)
    updated: list[KeyPath] = field(default_factory=list)
    keys: list[KeyPath] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.keys)


def missing_keys(
    template: Any,
    target: Any,
    dialect: Dialect = Dialect.BRACKETED,
    exclude_keys: Iterable[str] = DEFAULT_EXCLUDED_KEYS,
) -> list[KeyPath]:
    """Template leaves that do not exist in ``target``, in template order."""
    return [
        path
        for path in iter_keys(template, dialect, exclude_keys)
        if not key_exists(target, path)
    ]


def extra_keys(
    template: Any,
    target: Any,
    dialect: Dialect = Dialect.BRACKETED,
    exclude_keys: Iterable[str] = DEFAULT_EXCLUDED_KEYS,
) -> list[KeyPath]:
    """Target leaves that do not exist in ``template``, in target order."""
    return [
        path
        for path in iter_keys(target, dialect, exclude_keys)
        if not key_exists(template, path)
    ]


def diff_trees(
    template: Any,
    target: Any,
    dialect: Dialect = Dialect.BRACKETED,
    exclude_keys: Iterable[str] = DEFAULT_EXCLUDED_KEYS,
) -> DiffResult:
    return DiffResult(
        missing=missing_keys(template, target, dialect, exclude_keys),
        extra=extra_keys(template, target, dialect, exclude_keys),
    )


def keys_to_translate(
    template: Any,
    target: Any,
    updated_keys: Optional[Iterable[Any]] = None,
    dialect: Dialect = Dialect.BRACKETED,
) -> KeysToTranslate:
    """Union of missing keys and flagged keys, de-duplicated in first-seen order.

    Args:
        template: Template document
        target: Target document
        updated_keys: Paths (KeyPath or strings in ``dialect``) to force
            re-translation for. Defaults to the template's ``__updated_keys__``
            markers.
        dialect: Dialect of the returned paths
    """
    missing = missing_keys(template, target, dialect)
    if updated_keys is None:
        updated = get_updated_keys(template, dialect)
    else:
        updated = [ensure_path(p, dialect).to_dialect(dialect) for p in updated_keys]

    seen: set[KeyPath] = set()
    keys: list[KeyPath] = []
    for path in missing + updated:
        if path not in seen:
            seen.add(path)
            keys.append(path)
    return KeysToTranslate(missing=missing, updated=updated, keys=keys)


# ---------------------------------------------------------------------------
# __updated_keys__ markers
# ---------------------------------------------------------------------------

def _walk_mappings(tree: Any, dialect: Dialect):
    """Yield (path or None, mapping) for every mapping in ``tree``, pre-order."""
    stack: list[tuple[Optional[KeyPath], Any]] = [(None, tree)]
    while stack:
        prefix, node = stack.pop()
        if is_mapping(node):
            yield prefix, node
            children = [
                (Segment.name(str(k)), v)
                for k, v in node.items()
                if k != UPDATED_KEYS_MARKER
            ]
        elif is_sequence(node):
            make = Segment.numeric if dialect is Dialect.DOTTED else Segment.index
            children = [(make(i), v) for i, v in enumerate(node)]
        else:
            continue
        # Reversed so the stack pops children in document order
        for segment, value in reversed(children):
            path = prefix.child(segment) if prefix is not None else KeyPath((segment,), dialect)
            stack.append((path, value))


def get_updated_keys(template: Any, dialect: Dialect = Dialect.BRACKETED) -> list[KeyPath]:
    """Paths named by ``__updated_keys__`` markers anywhere in ``template``."""
    dialect = Dialect(dialect)
    updated = []
    for prefix, mapping in _walk_mappings(template, dialect):
        names = mapping.get(UPDATED_KEYS_MARKER)
        if not isinstance(names, list):
            continue
        for name in names:
            segment = Segment.name(str(name))
            updated.append(prefix.child(segment) if prefix is not None else KeyPath((segment,), dialect))
    return updated


def validate_updated_keys(template: Any) -> list[str]:
    """Describe every marker entry that names a key its object does not have."""
    errors = []
    for prefix, mapping in _walk_mappings(template, Dialect.BRACKETED):
        names = mapping.get(UPDATED_KEYS_MARKER)
        if names is None:
            continue
        where = str(prefix) if prefix is not None else "<root>"
        if not isinstance(names, list):
            errors.append(f'{UPDATED_KEYS_MARKER} at path "{where}" must be a list')
            continue
        for name in names:
            if name not in mapping:
                errors.append(
                    f'Invalid {UPDATED_KEYS_MARKER} "{name}" in object at path '
                    f'"{where}" - key does not exist'
                )
    return errors


def strip_updated_keys(tree: Any) -> Any:
    """Deep copy of ``tree`` without any ``__updated_keys__`` entries."""
    cleaned = copy.deepcopy(tree)
    for _, mapping in _walk_mappings(cleaned, Dialect.BRACKETED):
        if isinstance(mapping, dict):
            mapping.pop(UPDATED_KEYS_MARKER, None)
    return cleaned
