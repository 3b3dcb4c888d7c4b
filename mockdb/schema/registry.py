"""
Schema Registry for mockdb.

The SchemaRegistry is the schema index every store operation consults.
It provides:
- Registration of entity schemas
- Lookup by name (optional or required)
- Schema fingerprinting for consistency checks
- Freeze mechanism to prevent runtime modifications

Invariants:
    - Entity names are unique
    - Once frozen, no new schemas can be registered
    - Fingerprint changes when schema changes

How to change safely:
    - Register all schemas before handing the registry to a store
    - Never modify registered schemas after freeze

Example:
    >>> from mockdb.schema import SchemaRegistry, EntitySchema, field
    >>> registry = SchemaRegistry()
    >>> registry.register(EntitySchema(name="user", fields=(field("email", "email"),)))
    >>> registry.freeze()
    'sha256:...'
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Dict, Iterable, Iterator, Optional

from ..errors import DuplicateRegistrationError, RegistryFrozenError, SchemaNotFoundError
from .types import EntitySchema

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Central index of entity schemas.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups are lock-free
        - Freeze is atomic and irreversible

    Attributes:
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the schema (computed on freeze)
    """

    def __init__(self, schemas: Iterable[EntitySchema] = ()) -> None:
        self._schemas: Dict[str, EntitySchema] = {}
        self._frozen = False
        self._fingerprint: Optional[str] = None
        self._lock = threading.Lock()
        for schema in schemas:
            self.register(schema)

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def register(self, schema: EntitySchema) -> None:
        """Register an entity schema.

        Args:
            schema: The entity schema to register

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the name is already registered
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register entity '{schema.name}': registry is frozen"
                )

            if schema.name in self._schemas:
                raise DuplicateRegistrationError(
                    f"Entity name '{schema.name}' already registered"
                )

            self._schemas[schema.name] = schema
            logger.debug(f"Registered entity schema: {schema.name}")

    def get(self, name: str) -> Optional[EntitySchema]:
        """Get a schema by entity name, or None."""
        return self._schemas.get(name)

    def require(self, name: str) -> EntitySchema:
        """Get a schema by entity name.

        Raises:
            SchemaNotFoundError: If no such entity is registered
        """
        schema = self._schemas.get(name)
        if schema is None:
            raise SchemaNotFoundError(name)
        return schema

    def names(self) -> list[str]:
        return list(self._schemas)

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __iter__(self) -> Iterator[EntitySchema]:
        return iter(list(self._schemas.values()))

    def __len__(self) -> int:
        return len(self._schemas)

    def freeze(self) -> str:
        """Freeze the registry and compute fingerprint.

        Returns:
            Schema fingerprint string

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            logger.info(
                f"Schema registry frozen with {len(self._schemas)} entities, "
                f"fingerprint={self._fingerprint}"
            )
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """SHA-256 over the canonical JSON form, sorted by entity name."""
        canonical = json.dumps(
            self.to_dict(), sort_keys=True, separators=(",", ":"), default=str
        )
        return f"sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

    def to_dict(self) -> dict:
        return {
            "entities": [self._schemas[name].to_dict() for name in sorted(self._schemas)]
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True, default=str)

    @classmethod
    def from_dict(cls, data: dict) -> SchemaRegistry:
        """Create registry from dictionary representation (not frozen)."""
        return cls(EntitySchema.from_dict(e) for e in data.get("entities", []))

    @classmethod
    def from_json(cls, json_str: str) -> SchemaRegistry:
        return cls.from_dict(json.loads(json_str))

    def validate_all(self) -> list[str]:
        """Validate all registered schemas for consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for schema in self._schemas.values():
            for relation in schema.relations:
                if relation.target not in self._schemas:
                    errors.append(
                        f"Relation '{relation.name}' in entity '{schema.name}' "
                        f"references unknown entity '{relation.target}'"
                    )
            for f in schema.fields:
                if f.target is not None and f.target not in self._schemas:
                    errors.append(
                        f"Field '{f.name}' in entity '{schema.name}' "
                        f"references unknown entity '{f.target}'"
                    )

        return errors
