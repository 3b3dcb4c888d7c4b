"""
Two-phase seeding for mockdb.

Relations cross entities that may not exist yet when the first entity is
generated, so seeding runs in two phases:

1. Generation: for each requested entity, generate ``count`` records from
   the schema's field definitions and insert them with create().
2. Linking: for every belongsTo relation of every seeded entity, point
   each record's foreign key at a uniformly random record of the target
   batch.

Invariants:
    - After linking, every belongsTo foreign key of a seeded record refers
      to a record created in the same batch
    - An empty target batch leaves the foreign key as generated
    - Unknown entities in the request are skipped with a warning
    - A bounded unique field that runs out of values ends that entity's
      batch early with a warning; the records made so far are still linked
    - The whole run holds the store lock, so no concurrent delete can
      strand a freshly linked foreign key
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping
from typing import TYPE_CHECKING, Any, Optional

from ..schema.registry import SchemaRegistry
from ..schema.types import EntitySchema, RelationKind
from .generators import UniqueValuesExhausted

if TYPE_CHECKING:
    from .entity_store import EntityStore

logger = logging.getLogger(__name__)


class Seeder:
    """Populates an EntityStore with referentially consistent fake data."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def seed(
        self,
        counts: Mapping[str, int],
        registry: Optional[SchemaRegistry] = None,
    ) -> dict[str, list[dict[str, Any]]]:
        """Seed entities.

        Args:
            counts: Entity name to number of records
            registry: Schema index; defaults to the store's registry

        Returns:
            The created (and linked) records per entity

        Example:
            >>> batch = store.seed({"user": 5, "post": 15})
            >>> {p["authorId"] for p in batch["post"]} <= {u["id"] for u in batch["user"]}
            True
        """
        registry = registry or self.store.registry
        with self.store.lock:
            created = self._generate(counts, registry)
            self._link(created, registry)

        logger.info(
            "Seeded " + ", ".join(f"{name}={len(rows)}" for name, rows in created.items())
        )
        return created

    def _generate(
        self,
        counts: Mapping[str, int],
        registry: SchemaRegistry,
    ) -> dict[str, list[dict[str, Any]]]:
        generator = self.store.generator
        created: dict[str, list[dict[str, Any]]] = {}

        for name, count in counts.items():
            schema = registry.get(name)
            if schema is None or name not in self.store:
                logger.warning(f"Cannot seed unknown entity: {name}")
                continue

            taken = self._taken_unique_values(schema)
            rows: list[dict[str, Any]] = []
            for _ in range(max(int(count), 0)):
                try:
                    data = generator.generate_record(schema, taken)
                except UniqueValuesExhausted as e:
                    logger.warning(
                        f"Seeded {len(rows)} of {count} '{name}' records: "
                        f"unique field '{e.field_name}' has no unused values left"
                    )
                    break
                rows.append(self.store.create(name, data))
            created[name] = rows

        return created

    def _taken_unique_values(self, schema: EntitySchema) -> dict[str, set]:
        taken: dict[str, set] = {}
        unique_fields = [f.name for f in schema.fields if f.unique]
        if not unique_fields:
            return taken
        for record in self.store.raw_collection(schema.name).values():
            for name in unique_fields:
                value = record.get(name)
                if isinstance(value, Hashable) and value is not None:
                    taken.setdefault(name, set()).add(value)
        return taken

    def _link(
        self,
        created: dict[str, list[dict[str, Any]]],
        registry: SchemaRegistry,
    ) -> None:
        rng = self.store.generator.random

        for name, records in created.items():
            schema = registry.get(name)
            for relation in schema.relations:
                if relation.kind != RelationKind.BELONGS_TO:
                    continue

                targets = created.get(relation.target)
                foreign_key = relation.foreign_key_for(name)
                if not targets:
                    logger.warning(
                        f"No seeded '{relation.target}' records; "
                        f"leaving '{name}.{foreign_key}' unlinked"
                    )
                    continue

                for index, record in enumerate(records):
                    target = rng.choice(targets)
                    records[index] = self.store.update(
                        name, {"id": record["id"]}, {foreign_key: target["id"]}
                    )
