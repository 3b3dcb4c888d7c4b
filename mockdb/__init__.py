"""
mockdb - an in-memory, schema-driven mock database.

This package backs generated mock APIs with realistic data:
- Entity schemas (fields, relations, policies) registered up front
- Per-entity collections with filtered, sorted, paginated queries
- Relation hydration and referentially consistent seeding from Faker
- Row-level security, sliding-window rate limiting and an audit trail

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │  Endpoint   │────▶│ MockAdapter │────▶│   RateLimiter   │
    │  handler    │     │             │     └─────────────────┘
    └─────────────┘     └──────┬──────┘
                               │
                 ┌─────────────┼──────────────┐
                 ▼             ▼              ▼
           ┌───────────┐ ┌───────────┐ ┌─────────────┐
           │EntityStore│ │ RLS policy│ │ AuditLogger │
           └─────┬─────┘ └───────────┘ └─────────────┘
                 │
       ┌─────────┼──────────┐
       ▼         ▼          ▼
   ┌────────┐ ┌──────────┐ ┌────────┐
   │ Query  │ │Relations │ │ Seeder │
   └────────┘ └──────────┘ └────────┘

Invariants:
    - Every record has a string id unique within its entity
    - Callers only ever receive copies of stored records
    - Seeded foreign keys always reference existing records
    - Entities with no applicable policy are readable by everyone

How to change safely:
    - Register new field kinds with both a validator and a generator
    - Keep schema dictionaries accepting camelCase keys
"""

from ._version import __version__
from .adapter import MockAdapter, RequestContext
from .config import AuditSettings, RateLimiterSettings, StoreSettings
from .errors import (
    AccessDeniedError,
    MockDbError,
    RateLimitExceededError,
    SchemaNotFoundError,
    ValidationError,
)
from .schema import EntitySchema, FieldKind, SchemaRegistry, belongs_to, field, has_many, has_one
from .store import EntityStore, QueryOptions, QueryResult

__all__ = [
    "__version__",
    "MockAdapter",
    "RequestContext",
    "EntityStore",
    "QueryOptions",
    "QueryResult",
    "EntitySchema",
    "FieldKind",
    "SchemaRegistry",
    "field",
    "belongs_to",
    "has_one",
    "has_many",
    "StoreSettings",
    "RateLimiterSettings",
    "AuditSettings",
    "MockDbError",
    "SchemaNotFoundError",
    "ValidationError",
    "AccessDeniedError",
    "RateLimitExceededError",
]
