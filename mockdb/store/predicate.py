"""
Predicate evaluation for mockdb queries.

A where tree maps field names to conditions. All top-level fields are
ANDed. A condition is one of:
- None: matches only absent or None fields
- a mapping with operator keys (equals, not, in, notIn, lt, lte, gt, gte,
  contains, startsWith, endsWith)
- a mapping with no operator keys: deep equality against the field
- any other value: direct equality

Invariants:
    - Equality is strict: booleans never equal numbers
    - Range operators only match when both sides are numeric
    - String operators only match when the field value is a string
    - An unrecognized key inside an operator mapping compares the field
      against the whole mapping; it is never an error

How to change safely:
    - New operators must be added to OPERATORS and documented above
    - Do not make unknown operators raise; callers rely on the fallback
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equals(left: Any, right: Any) -> bool:
    """Equality that does not conflate bool with int, recursing into containers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(strict_equals(left[k], right[k]) for k in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )
    return left == right


def _contained(value: Any, target: Any) -> bool:
    return any(strict_equals(value, item) for item in target)


def _numeric(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, target: Any) -> bool:
        return _is_number(value) and _is_number(target) and compare(value, target)

    return check


def _textual(compare: Callable[[str, str], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, target: Any) -> bool:
        return isinstance(value, str) and isinstance(target, str) and compare(value, target)

    return check


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": strict_equals,
    "not": lambda v, t: not strict_equals(v, t),
    "in": lambda v, t: isinstance(t, (list, tuple, set, frozenset)) and _contained(v, t),
    "notIn": lambda v, t: not (
        isinstance(t, (list, tuple, set, frozenset)) and _contained(v, t)
    ),
    "lt": _numeric(lambda v, t: v < t),
    "lte": _numeric(lambda v, t: v <= t),
    "gt": _numeric(lambda v, t: v > t),
    "gte": _numeric(lambda v, t: v >= t),
    "contains": _textual(lambda v, t: t in v),
    "startsWith": _textual(lambda v, t: v.startswith(t)),
    "endsWith": _textual(lambda v, t: v.endswith(t)),
}


def matches_operators(value: Any, operators: Mapping[str, Any]) -> bool:
    """Check a field value against every key of an operator mapping.

    Args:
        value: The record's field value (None when absent)
        operators: Operator mapping, e.g. ``{"gte": 5, "lt": 10}``

    Returns:
        True if every operator is satisfied
    """
    for op, target in operators.items():
        check = OPERATORS.get(op)
        if check is None:
            # unrecognized operator: equality against the whole operand
            if not strict_equals(value, operators):
                return False
            continue
        if not check(value, target):
            return False
    return True


def matches_condition(value: Any, condition: Any) -> bool:
    """Evaluate a single field condition."""
    if condition is None:
        return value is None
    if isinstance(condition, Mapping):
        if not any(key in OPERATORS for key in condition):
            return strict_equals(value, condition)
        return matches_operators(value, condition)
    return strict_equals(value, condition)


def matches_where(record: Mapping[str, Any], where: Mapping[str, Any] | None) -> bool:
    """Decide whether a record satisfies a where tree.

    Args:
        record: The record to test
        where: Field conditions, ANDed; None or empty matches everything

    Returns:
        True if the record matches

    Example:
        >>> matches_where({"age": 7, "name": "ann"}, {"age": {"gte": 5}, "name": "ann"})
        True
    """
    if not where:
        return True
    for key, condition in where.items():
        value = record.get(key, _MISSING)
        if value is _MISSING:
            value = None
        if not matches_condition(value, condition):
            return False
    return True


def is_id_lookup(where: Mapping[str, Any] | None) -> bool:
    """True when where is exactly ``{"id": <scalar>}``."""
    if not where or len(where) != 1 or "id" not in where:
        return False
    target = where["id"]
    return isinstance(target, (str, int)) and not isinstance(target, bool)
