"""
Query engine for mockdb.

Composes the predicate evaluator with sorting and pagination. The
pipeline order is fixed: filter, count total, sort, offset, limit.

Sorting rules per key:
    - None / absent values sort last regardless of direction
    - strings compare case-insensitively first, then by code point
    - dates and datetimes compare by instant
    - everything else by natural ordering
    - ties fall through to the next key; the sort is stable

Invariants:
    - meta.total is the filtered count before pagination
    - has_more is only ever True when a limit was given
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Optional

from ..errors import ValidationError
from .predicate import matches_where

logger = logging.getLogger(__name__)

DIRECTIONS = ("asc", "desc")

OrderBy = tuple[tuple[str, str], ...]


def normalize_order_by(value: Any) -> OrderBy:
    """Normalize orderBy input to a tuple of (field, direction) pairs.

    Accepts None, a mapping ``{field: direction}`` (insertion order is key
    priority) or a sequence of ``(field, direction)`` pairs.

    Raises:
        ValidationError: If a direction is not "asc" or "desc"
    """
    if not value:
        return ()
    if isinstance(value, Mapping):
        pairs = list(value.items())
    elif isinstance(value, Sequence) and not isinstance(value, str):
        pairs = [tuple(p) for p in value]
    else:
        raise ValidationError(f"Invalid orderBy: {value!r}", field_name="orderBy")

    result = []
    for pair in pairs:
        if len(pair) != 2:
            raise ValidationError(f"Invalid orderBy entry: {pair!r}", field_name="orderBy")
        field_name, direction = pair
        direction = str(direction).lower()
        if direction not in DIRECTIONS:
            raise ValidationError(
                f"Invalid sort direction '{direction}' for '{field_name}', "
                f"must be one of {DIRECTIONS}",
                field_name="orderBy",
            )
        result.append((field_name, direction))
    return tuple(result)


@dataclass(frozen=True)
class QueryOptions:
    """Options for a multi-record query.

    Attributes:
        where: Predicate tree (see predicate module)
        order_by: (field, direction) pairs, highest priority first
        limit: Maximum number of records returned
        offset: Number of sorted records skipped
        include: Relation names to hydrate
    """

    where: Optional[Mapping[str, Any]] = None
    order_by: OrderBy = ()
    limit: Optional[int] = None
    offset: int = 0
    include: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.limit is not None and (not isinstance(self.limit, int) or self.limit < 0):
            raise ValidationError(f"limit must be a non-negative integer, got {self.limit!r}")
        if not isinstance(self.offset, int) or self.offset < 0:
            raise ValidationError(f"offset must be a non-negative integer, got {self.offset!r}")

    @classmethod
    def build(cls, options: QueryOptions | Mapping[str, Any] | None = None) -> QueryOptions:
        """Coerce None, a QueryOptions or a plain mapping into QueryOptions.

        Mapping keys may use either ``order_by`` or ``orderBy``.
        """
        if options is None:
            return cls()
        if isinstance(options, QueryOptions):
            return options
        order_by = options.get("order_by", options.get("orderBy"))
        include = options.get("include") or ()
        if isinstance(include, str):
            include = (include,)
        return cls(
            where=options.get("where"),
            order_by=normalize_order_by(order_by),
            limit=options.get("limit"),
            offset=options.get("offset") or 0,
            include=tuple(include),
        )


@dataclass(frozen=True)
class QueryMeta:
    total: int
    has_more: bool

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "hasMore": self.has_more}


@dataclass(frozen=True)
class QueryResult:
    """A page of records plus pagination metadata."""

    data: list[dict[str, Any]] = dataclass_field(default_factory=list)
    meta: QueryMeta = QueryMeta(total=0, has_more=False)

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "meta": self.meta.to_dict()}


def _instant(value: date) -> float:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _natural(a: Any, b: Any) -> int:
    try:
        return (a > b) - (a < b)
    except TypeError:
        # incomparable types: group by type name, then textual form
        left, right = (type(a).__name__, str(a)), (type(b).__name__, str(b))
        return (left > right) - (left < right)


def compare_values(a: Any, b: Any) -> int:
    """Compare two non-None sort values; returns -1, 0 or 1."""
    if isinstance(a, str) and isinstance(b, str):
        folded = _natural(a.casefold(), b.casefold())
        return folded if folded else _natural(a, b)
    if isinstance(a, date) and isinstance(b, date):
        return _natural(_instant(a), _instant(b))
    return _natural(a, b)


def sort_records(
    records: Iterable[Mapping[str, Any]],
    order_by: Any,
) -> list[Mapping[str, Any]]:
    """Return a new list sorted by a multi-key order.

    Args:
        records: Records to sort (not modified)
        order_by: Anything normalize_order_by accepts

    Returns:
        Sorted list (stable)
    """
    keys = normalize_order_by(order_by)
    items = list(records)
    if not keys:
        return items

    def compare(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
        for field_name, direction in keys:
            a_val, b_val = a.get(field_name), b.get(field_name)
            if a_val is None and b_val is None:
                continue
            if a_val is None:
                return 1
            if b_val is None:
                return -1
            result = compare_values(a_val, b_val)
            if result:
                return -result if direction == "desc" else result
        return 0

    return sorted(items, key=functools.cmp_to_key(compare))


def run_query(records: Iterable[dict[str, Any]], options: QueryOptions) -> QueryResult:
    """Filter, count, sort and paginate a record snapshot.

    Args:
        records: Snapshot of the collection in insertion order
        options: Query options

    Returns:
        QueryResult with the page and meta.total / meta.has_more
    """
    results = [r for r in records if matches_where(r, options.where)]
    total = len(results)

    if options.order_by:
        results = sort_records(results, options.order_by)

    if options.offset > 0:
        results = results[options.offset:]
    if options.limit is not None:
        results = results[: options.limit]

    has_more = options.limit is not None and options.offset + len(results) < total
    return QueryResult(data=list(results), meta=QueryMeta(total=total, has_more=has_more))
