"""
Store module for mockdb - the runtime data engine.

This module handles:
- Per-entity record collections with CRUD (EntityStore)
- Predicate evaluation and the query pipeline
- Relation hydration (belongsTo / hasOne / hasMany)
- Fake data generation and two-phase seeding

Invariants:
    - id is unique within each collection
    - Callers receive copies, never stored records
    - Queries run on a snapshot taken at query start

How to change safely:
    - Keep the query pipeline order: filter, count, sort, offset, limit
    - Keep read-modify-write sequences inside the store lock
"""

from .entity_store import EntityStore
from .generators import FakeDataGenerator
from .predicate import matches_where
from .query import QueryMeta, QueryOptions, QueryResult, sort_records
from .relations import RelationResolver
from .seed import Seeder

__all__ = [
    "EntityStore",
    "FakeDataGenerator",
    "matches_where",
    "QueryOptions",
    "QueryResult",
    "QueryMeta",
    "sort_records",
    "RelationResolver",
    "Seeder",
]
