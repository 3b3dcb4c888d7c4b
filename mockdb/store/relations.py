"""
Relation hydration for mockdb.

Resolves declared relations by cross-referencing entity collections:
- belongsTo: the source record holds the foreign key; look up the target
  by id
- hasOne: the first target record whose foreign key equals the source id
- hasMany: every such target record, optionally ordered and limited

Invariants:
    - Hydration works on copies; stored records are never modified
    - An undefined relation name is skipped, it never fails the read
    - A missing target collection yields None (or [] for hasMany)
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Iterable, Optional

from ..schema.registry import SchemaRegistry
from ..schema.types import RelationDef, RelationKind
from .predicate import strict_equals
from .query import sort_records

if TYPE_CHECKING:
    from .entity_store import EntityStore

logger = logging.getLogger(__name__)


class RelationResolver:
    """Hydrates relations against the collections of one EntityStore."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def include_relations(
        self,
        entity: str,
        records: Iterable[Mapping[str, Any]],
        relation_names: Iterable[str],
        registry: Optional[SchemaRegistry] = None,
    ) -> list[dict[str, Any]]:
        """Return copies of records with the named relations attached.

        Args:
            entity: Source entity name
            records: Records of the source entity
            relation_names: Relations to resolve
            registry: Schema index; defaults to the store's registry

        Returns:
            New list of shallow-copied records with relation keys added

        Raises:
            SchemaNotFoundError: If the source entity is not registered
        """
        registry = registry or self.store.registry
        schema = registry.require(entity)
        names = list(relation_names)

        result = []
        with self.store.lock:
            for record in records:
                hydrated = dict(record)
                for name in names:
                    relation = schema.get_relation(name)
                    if relation is None:
                        logger.debug(f"Entity '{entity}' has no relation '{name}', skipping")
                        continue
                    hydrated[name] = self.load(record, relation, entity)
                result.append(hydrated)
        return result

    def load(self, record: Mapping[str, Any], relation: RelationDef, source_entity: str) -> Any:
        """Resolve one relation for one record."""
        many = relation.kind == RelationKind.HAS_MANY
        targets = self.store.raw_collection(relation.target)
        if targets is None:
            logger.warning(
                f"Relation '{source_entity}.{relation.name}' targets unknown entity "
                f"'{relation.target}'"
            )
            return [] if many else None

        foreign_key = relation.foreign_key_for(source_entity)

        if relation.kind == RelationKind.BELONGS_TO:
            value = record.get(foreign_key)
            if not isinstance(value, str) or not value:
                return None
            target = targets.get(value)
            return copy.deepcopy(target) if target is not None else None

        source_id = record.get("id")
        if source_id is None:
            return [] if many else None

        if relation.kind == RelationKind.HAS_ONE:
            for target in targets.values():
                if strict_equals(target.get(foreign_key), source_id):
                    return copy.deepcopy(target)
            return None

        related = [
            copy.deepcopy(target)
            for target in targets.values()
            if strict_equals(target.get(foreign_key), source_id)
        ]
        if relation.order_by:
            related = sort_records(related, relation.order_by)
        if relation.limit is not None:
            related = related[: relation.limit]
        return related
