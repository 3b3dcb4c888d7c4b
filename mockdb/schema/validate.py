"""
Payload validation for mockdb.

This module validates create/update payloads against an EntitySchema:
- Unknown field detection with suggestions
- Per-kind type checks and nullability
- Default application for create payloads

Records stay flexible dicts internally; validation happens only at the
create/update boundary.

Invariants:
    - Validation errors are deterministic
    - Store-managed fields (id, timestamps) and belongsTo foreign keys are
      always accepted even when not declared as fields
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any, Dict, List, Tuple

from ..errors import UnknownFieldError, ValidationError
from .types import EntitySchema


def known_keys(schema: EntitySchema) -> set[str]:
    """Every key a record of this entity may carry."""
    return (
        set(schema.get_field_names())
        | schema.system_field_names()
        | schema.foreign_key_names()
    )


def validate_payload(
    schema: EntitySchema,
    payload: Dict[str, Any],
) -> Tuple[bool, List[str]]:
    """Validate payload against an entity schema.

    Only the keys present in the payload are type-checked, so partial
    update payloads validate the same way as full ones.

    Args:
        schema: Entity schema to validate against
        payload: Payload to validate

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: List[str] = []

    known = known_keys(schema)
    for field_name in sorted(set(payload) - known):
        suggestions = get_close_matches(field_name, sorted(known), n=3)
        if suggestions:
            errors.append(f"Unknown field '{field_name}'. Did you mean: {suggestions}?")
        else:
            errors.append(f"Unknown field '{field_name}'")

    for field_def in schema.fields:
        if field_def.name not in payload:
            continue
        is_valid, error = field_def.validate_value(payload[field_def.name])
        if not is_valid and error:
            errors.append(error)

    return len(errors) == 0, errors


def validate_or_raise(
    schema: EntitySchema,
    payload: Dict[str, Any],
) -> None:
    """Validate payload and raise if invalid.

    Raises:
        UnknownFieldError: If an unknown field is provided
        ValidationError: If validation fails
    """
    known = known_keys(schema)
    unknown = sorted(set(payload) - known)

    if unknown:
        field_name = unknown[0]
        suggestions = get_close_matches(field_name, sorted(known), n=3)
        raise UnknownFieldError(field_name, schema.name, suggestions)

    is_valid, errors = validate_payload(schema, payload)
    if not is_valid:
        raise ValidationError(
            f"Validation failed for {schema.name}: {'; '.join(errors)}",
            errors=errors,
        )


def apply_defaults(schema: EntitySchema, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of payload with declared defaults filled in."""
    result = dict(payload)
    for field_def in schema.fields:
        if field_def.name not in result and field_def.default is not None:
            result[field_def.name] = field_def.default
    return result


def read_only_violations(schema: EntitySchema, payload: Dict[str, Any]) -> List[str]:
    """Names of read-only fields present in an update payload."""
    return [f.name for f in schema.fields if f.read_only and f.name in payload]
