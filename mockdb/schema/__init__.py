"""
Schema module for mockdb.

This module provides the normalized entity model consumed by the store:
- Type definitions (EntitySchema, FieldDef, RelationDef)
- Schema registry used as the schema index
- Payload validation at create/update boundaries

Invariants:
    - Schemas are immutable once registered
    - Entity names are unique within a registry

How to change safely:
    - Add new field kinds together with validators and generators
    - Keep from_dict accepting both snake_case and camelCase keys
"""

from .registry import SchemaRegistry
from .types import (
    EntitySchema,
    FieldDef,
    FieldKind,
    RelationDef,
    RelationKind,
    belongs_to,
    field,
    has_many,
    has_one,
)
from .validate import validate_or_raise, validate_payload

__all__ = [
    # Types
    "EntitySchema",
    "FieldDef",
    "FieldKind",
    "RelationDef",
    "RelationKind",
    "field",
    "belongs_to",
    "has_one",
    "has_many",
    # Registry
    "SchemaRegistry",
    # Validation
    "validate_payload",
    "validate_or_raise",
]
