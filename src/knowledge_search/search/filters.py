"""Tag filter compilation into SQL predicates.

A filter map assigns a value expression to a tag slot (``tag1`` .. ``tag7``).
A value containing ``|OR|`` is an OR-group of alternatives. Every comparison
is a case-insensitive equality; slots are ANDed together. Unknown slots are
ignored rather than rejected.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass

from knowledge_search.errors import SearchUsageError
from knowledge_search.models.search import TAG_SLOTS

logger = logging.getLogger(__name__)

OR_SEPARATOR = "|OR|"
ALWAYS_TRUE = "1 = 1"


@dataclass(frozen=True)
class TagPredicate:
    """A SQL boolean expression over chunk alias ``c`` with ``?`` parameters."""

    sql: str
    params: tuple[str, ...] = ()


def split_alternatives(value: str) -> list[str]:
    """Split an OR-group into stripped, non-empty alternatives."""
    if OR_SEPARATOR not in value:
        return [value]
    return [alt.strip() for alt in value.split(OR_SEPARATOR) if alt.strip()]


def _normalize_slot(slot: str) -> str:
    return slot.strip().lower()


def _compile_slot(slot: str, value: str) -> TagPredicate:
    column = _normalize_slot(slot)
    if column not in TAG_SLOTS:
        logger.debug("Unknown tag slot %r — not filtering on it", slot)
        return TagPredicate(ALWAYS_TRUE)

    alternatives = split_alternatives(str(value))
    if not alternatives:
        logger.debug("Empty OR-group for %s — not filtering on it", column)
        return TagPredicate(ALWAYS_TRUE)

    equality = f"LOWER(c.{column}) = LOWER(?)"
    if len(alternatives) == 1 and OR_SEPARATOR not in value:
        return TagPredicate(equality, (alternatives[0],))

    logger.debug("OR'ing %d alternatives for %s", len(alternatives), column)
    joined = " OR ".join(equality for _ in alternatives)
    return TagPredicate(f"({joined})", tuple(alternatives))


def compile_tag_filters(filters: Mapping[str, str]) -> TagPredicate:
    """Compile a tag filter map into one ANDed predicate."""
    if not filters:
        raise SearchUsageError("Tag filters are required to build a tag predicate")

    fragments = [_compile_slot(slot, value) for slot, value in filters.items()]
    sql = " AND ".join(f.sql for f in fragments)
    params = tuple(p for f in fragments for p in f.params)
    return TagPredicate(sql, params)


class TagPredicateCache:
    """Bounded LRU cache of compiled predicates, owned by one search service."""

    def __init__(self, max_size: int = 256) -> None:
        """Initialize with a maximum number of cached predicates."""
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: OrderedDict[tuple[tuple[str, str], ...], TagPredicate] = OrderedDict()

    def get_or_compile(self, filters: Mapping[str, str]) -> TagPredicate:
        """Return the cached predicate for ``filters``, compiling on a miss."""
        key = tuple(sorted((slot, str(value)) for slot, value in filters.items()))
        cached = self._entries.get(key)
        if cached is not None:
            self._entries.move_to_end(key)
            return cached

        predicate = compile_tag_filters(filters)
        self._entries[key] = predicate
        if len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
        return predicate

    def clear(self) -> None:
        """Drop every cached predicate."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
