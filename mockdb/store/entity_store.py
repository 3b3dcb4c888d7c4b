"""
In-memory entity store for mockdb.

This module manages one ordered record collection per entity:
- Record CRUD (create, find_one, update, delete)
- Multi-record queries through the query engine
- Relation hydration and two-phase seeding entry points
- Reset without discarding schema information

The store stands in for a relational database during development and
tests. Nothing is persisted.

Invariants:
    - Within one collection, id is unique
    - Insertion order is preserved for get_all / scans, but carries no
      query semantics
    - Callers only ever receive deep copies; no external mutation
      aliases a stored record
    - update never changes a record's id
    - Referencing an entity that was not initialized raises
      SchemaNotFoundError
    - The registry adopted by initialize() is frozen

How to change safely:
    - Keep every read-modify-write inside the store lock
    - Queries must run against a snapshot taken under the lock
    - Keep validation at the create/update boundary only

Thread safety:
    One re-entrant lock guards all collections. Seeding holds it for its
    whole generation + linking sequence.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

from ..config import StoreSettings
from ..errors import DuplicateIdError, SchemaNotFoundError, UniqueConstraintError
from ..schema.registry import SchemaRegistry
from ..schema.types import EntitySchema
from ..schema.validate import apply_defaults, validate_or_raise
from .generators import FakeDataGenerator
from .predicate import is_id_lookup, matches_where, strict_equals
from .query import QueryOptions, QueryResult, run_query
from .relations import RelationResolver
from .seed import Seeder

logger = logging.getLogger(__name__)

Record = dict[str, Any]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EntityStore:
    """Schema-driven in-memory record store.

    Example:
        >>> store = EntityStore(StoreSettings(faker_seed=123))
        >>> store.initialize([user_schema, post_schema])
        >>> user = store.create("user", {"name": "Ada"})
        >>> store.find_one("user", {"id": user["id"]})["name"]
        'Ada'
        >>> store.find_many("post", {"where": {"authorId": user["id"]}}).meta.total
        0
    """

    def __init__(
        self,
        settings: Optional[StoreSettings] = None,
        generator: Optional[FakeDataGenerator] = None,
    ) -> None:
        """Initialize the store.

        Args:
            settings: Store configuration (defaults apply when omitted)
            generator: Fake data generator; built from settings when omitted
        """
        self.settings = settings or StoreSettings()
        self.generator = generator or FakeDataGenerator(
            seed=self.settings.faker_seed,
            nullable_probability=self.settings.nullable_probability,
        )
        self.registry = SchemaRegistry()
        self.relations = RelationResolver(self)
        self.seeder = Seeder(self)
        self._collections: dict[str, dict[str, Record]] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def _trace(self, message: str) -> None:
        if self.settings.debug:
            logger.debug(message)

    def initialize(self, schemas: Union[SchemaRegistry, Iterable[EntitySchema]]) -> None:
        """Allocate an empty collection per schema.

        The adopted registry is frozen, so the schema index and the
        collections can never disagree about which entities exist.

        Args:
            schemas: A SchemaRegistry or an iterable of EntitySchema
        """
        registry = schemas if isinstance(schemas, SchemaRegistry) else SchemaRegistry(schemas)
        if not registry.frozen:
            registry.freeze()
        for problem in registry.validate_all():
            logger.warning(f"Schema problem: {problem}")
        with self._lock:
            self.registry = registry
            self._collections = {schema.name: {} for schema in registry}
        logger.info(
            f"Initialized entity store with {len(registry)} entities, "
            f"fingerprint={registry.fingerprint}"
        )

    def __contains__(self, entity: object) -> bool:
        return entity in self._collections

    def entities(self) -> list[str]:
        return list(self._collections)

    def _collection(self, entity: str) -> dict[str, Record]:
        collection = self._collections.get(entity)
        if collection is None:
            raise SchemaNotFoundError(entity)
        return collection

    def raw_collection(self, entity: str) -> Optional[dict[str, Record]]:
        """Stored records for an entity, or None. Callers must hold the lock
        and must not mutate or leak the returned records."""
        return self._collections.get(entity)

    def _schema(self, entity: str) -> EntitySchema:
        return self.registry.require(entity)

    def _locate(
        self, collection: dict[str, Record], where: Mapping[str, Any]
    ) -> tuple[Optional[str], Optional[Record]]:
        if is_id_lookup(where):
            record = collection.get(where["id"])
            return (where["id"], record) if record is not None else (None, None)
        for record_id, record in collection.items():
            if matches_where(record, where):
                return record_id, record
        return None, None

    def _check_unique(
        self,
        schema: EntitySchema,
        collection: dict[str, Record],
        payload: Mapping[str, Any],
        exclude_id: Optional[str] = None,
    ) -> None:
        for field_def in schema.fields:
            if not field_def.unique:
                continue
            value = payload.get(field_def.name)
            if value is None:
                continue
            for record_id, record in collection.items():
                if record_id != exclude_id and strict_equals(record.get(field_def.name), value):
                    raise UniqueConstraintError(schema.name, field_def.name, value)

    def create(self, entity: str, data: Mapping[str, Any]) -> Record:
        """Insert a record.

        Assigns an id when absent and stamps createdAt/updatedAt when the
        schema declares timestamps (an explicit createdAt is kept).

        Args:
            entity: Entity name
            data: Field values

        Returns:
            A copy of the stored record

        Raises:
            SchemaNotFoundError: Unknown entity
            ValidationError / UnknownFieldError: Invalid payload
            DuplicateIdError: Explicit id already present
            UniqueConstraintError: Unique field value already taken
        """
        with self._lock:
            collection = self._collection(entity)
            schema = self._schema(entity)

            payload = dict(data)
            if self.settings.validate_payloads:
                validate_or_raise(schema, payload)
            payload = apply_defaults(schema, payload)

            record_id = payload.get("id") or self.generator.uuid()
            if not isinstance(record_id, str):
                record_id = str(record_id)
            if record_id in collection:
                raise DuplicateIdError(entity, record_id)
            self._check_unique(schema, collection, payload)

            record = copy.deepcopy(payload)
            record["id"] = record_id
            if schema.timestamps:
                now = _now()
                record["createdAt"] = payload.get("createdAt") or now
                record["updatedAt"] = now

            collection[record_id] = record
            self._trace(f"Created {entity}: {record_id}")
            return copy.deepcopy(record)

    def find_one(self, entity: str, where: Mapping[str, Any]) -> Optional[Record]:
        """Find the first record matching where.

        ``{"id": x}`` is a direct lookup; anything else scans in insertion
        order.

        Returns:
            A copy of the record, or None
        """
        with self._lock:
            _, record = self._locate(self._collection(entity), where)
            return copy.deepcopy(record) if record is not None else None

    def find_many(
        self,
        entity: str,
        options: Union[QueryOptions, Mapping[str, Any], None] = None,
    ) -> QueryResult:
        """Run a query: filter, count, sort, offset, limit, then hydrate.

        The query runs on a snapshot taken at call time, so concurrent
        writes are never visible half-way through.

        Args:
            entity: Entity name
            options: QueryOptions or a mapping with where/orderBy/limit/
                offset/include

        Returns:
            QueryResult with data and meta (total, has_more)
        """
        query = QueryOptions.build(options)
        records = self.snapshot(entity)
        result = run_query(records, query)

        if query.include:
            hydrated = self.relations.include_relations(entity, result.data, query.include)
            result = QueryResult(data=hydrated, meta=result.meta)

        self._trace(
            f"Queried {entity}: {len(result.data)} of {result.meta.total} "
            f"(has_more={result.meta.has_more})"
        )
        return result

    def update(
        self,
        entity: str,
        where: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> Optional[Record]:
        """Merge data over the first matching record.

        Later keys win, id is preserved even if data carries another one,
        updatedAt is re-stamped when the schema declares timestamps.

        Returns:
            A copy of the updated record, or None if nothing matched
        """
        with self._lock:
            collection = self._collection(entity)
            schema = self._schema(entity)

            payload = dict(data)
            if self.settings.validate_payloads:
                validate_or_raise(schema, payload)

            record_id, existing = self._locate(collection, where)
            if existing is None:
                return None

            self._check_unique(schema, collection, payload, exclude_id=record_id)

            updated = {**existing, **copy.deepcopy(payload), "id": record_id}
            if schema.timestamps:
                updated["updatedAt"] = _now()

            collection[record_id] = updated
            self._trace(f"Updated {entity}: {record_id}")
            return copy.deepcopy(updated)

    def delete(self, entity: str, where: Mapping[str, Any]) -> bool:
        """Remove the first matching record.

        Returns:
            True if a record was removed
        """
        with self._lock:
            collection = self._collection(entity)
            record_id, existing = self._locate(collection, where)
            if existing is None:
                return False
            del collection[record_id]
            self._trace(f"Deleted {entity}: {record_id}")
            return True

    def count(self, entity: str, where: Optional[Mapping[str, Any]] = None) -> int:
        with self._lock:
            collection = self._collection(entity)
            if not where:
                return len(collection)
            return sum(1 for record in collection.values() if matches_where(record, where))

    def get_all(self, entity: str) -> list[Record]:
        """All records of an entity in insertion order (diagnostics)."""
        return self.snapshot(entity)

    def snapshot(self, entity: str) -> list[Record]:
        """Deep copies of an entity's records, taken under the lock."""
        with self._lock:
            return copy.deepcopy(list(self._collection(entity).values()))

    def reset(self) -> None:
        """Clear every collection; schemas stay registered."""
        with self._lock:
            for collection in self._collections.values():
                collection.clear()
        logger.info("Reset all entity collections")

    def include_relations(
        self,
        entity: str,
        records: Iterable[Mapping[str, Any]],
        relation_names: Iterable[str],
        registry: Optional[SchemaRegistry] = None,
    ) -> list[Record]:
        """Attach related records under each relation's name."""
        return self.relations.include_relations(entity, records, relation_names, registry)

    def seed(
        self,
        counts: Mapping[str, int],
        registry: Optional[SchemaRegistry] = None,
    ) -> dict[str, list[Record]]:
        """Generate and link synthetic records. See Seeder.seed."""
        return self.seeder.seed(counts, registry)

    def get_stats(self) -> dict[str, int]:
        """Record count per entity."""
        with self._lock:
            return {name: len(records) for name, records in self._collections.items()}
