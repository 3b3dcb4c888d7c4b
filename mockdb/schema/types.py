"""
Core type definitions for the mockdb schema model.

This module defines the normalized Entity Schema consumed by the store:
- FieldDef: Individual field within an entity
- RelationDef: belongsTo / hasOne / hasMany link to another entity
- EntitySchema: Fields, relations, timestamp policy and RLS policies

Entity schemas are produced by an external schema parser. They are
immutable once loaded; the store never modifies them.

Invariants:
    - Entity and field names are non-empty
    - Field names and relation names are unique within an entity
    - enum fields declare at least one value
    - ref fields declare a target entity

How to change safely:
    - Add new FieldKind values together with a validator and a generator
    - Keep to_dict/from_dict symmetric; external tooling stores this form

Example:
    >>> from mockdb.schema.types import EntitySchema, field, belongs_to
    >>> Post = EntitySchema(
    ...     name="post",
    ...     fields=(
    ...         field("title", "string"),
    ...         field("status", "enum", values=("draft", "published")),
    ...     ),
    ...     relations=(belongs_to("author", "user", foreign_key="authorId"),),
    ...     timestamps=True,
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..security.rls import RLSPolicy


class FieldKind(Enum):
    """Supported field types in the schema.

    These map to validation rules and fake-data generators.
    """

    STRING = "string"
    UUID = "uuid"
    EMAIL = "email"
    URL = "url"
    NUMBER = "number"
    INT = "int"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    ENUM = "enum"
    ARRAY = "array"
    OBJECT = "object"
    JSON = "json"
    REF = "ref"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Args:
            value: String name of the field kind

        Returns:
            Corresponding FieldKind enum value

        Raises:
            ValueError: If value is not a valid field kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")


class RelationKind(Enum):
    """Relation cardinalities understood by the resolver."""

    BELONGS_TO = "belongsTo"
    HAS_ONE = "hasOne"
    HAS_MANY = "hasMany"

    @classmethod
    def from_str(cls, value: str) -> RelationKind:
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid relation kind '{value}'. Valid kinds: {valid}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


_VALIDATORS = {
    FieldKind.STRING: lambda v: isinstance(v, str),
    FieldKind.UUID: lambda v: isinstance(v, str),
    FieldKind.EMAIL: lambda v: isinstance(v, str),
    FieldKind.URL: lambda v: isinstance(v, str),
    FieldKind.NUMBER: _is_number,
    FieldKind.INT: lambda v: isinstance(v, int) and not isinstance(v, bool),
    FieldKind.FLOAT: _is_number,
    FieldKind.BOOLEAN: lambda v: isinstance(v, bool),
    FieldKind.DATE: lambda v: isinstance(v, (datetime, date, str)),
    FieldKind.ARRAY: lambda v: isinstance(v, (list, tuple)),
    FieldKind.OBJECT: lambda v: isinstance(v, dict),
    FieldKind.JSON: lambda _: True,
    FieldKind.REF: lambda v: isinstance(v, str),
}


@dataclass(frozen=True)
class FieldDef:
    """Definition of a single field within an entity.

    Attributes:
        name: Field name (record key)
        kind: The data type of the field
        nullable: Whether None is an accepted value
        unique: Whether values must be unique across the collection
        default: Default value applied on create when the field is missing
        read_only: Excluded from seeding and from adapter update payloads
        hint: Named generator used by seeding (e.g. "person.fullName")
        values: Allowed values if kind is ENUM
        target: Target entity if kind is REF
        items: Item kind for ARRAY fields (informational)

    Example:
        >>> email = FieldDef(name="email", kind=FieldKind.EMAIL, unique=True)
    """

    name: str
    kind: FieldKind
    nullable: bool = False
    unique: bool = False
    default: Any = None
    read_only: bool = False
    hint: str | None = None
    values: tuple[Any, ...] | None = None
    target: str | None = None
    items: FieldKind | None = None

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.kind == FieldKind.ENUM and not self.values:
            raise ValueError(f"values required for enum field '{self.name}'")
        if self.kind == FieldKind.REF and not self.target:
            raise ValueError(f"target required for ref field '{self.name}'")

    def validate_value(self, value: Any) -> tuple[bool, str | None]:
        """Validate a value against this field definition.

        Args:
            value: The value to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            if not self.nullable:
                return False, f"Field '{self.name}' is not nullable"
            return True, None

        if self.kind == FieldKind.ENUM:
            if value not in self.values:
                return (
                    False,
                    f"Field '{self.name}' must be one of {self.values}, got {value!r}",
                )
            return True, None

        validator = _VALIDATORS.get(self.kind)
        if validator and not validator(value):
            return (
                False,
                f"Field '{self.name}' has invalid type {type(value).__name__} "
                f"for kind {self.kind.value}",
            )

        return True, None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {"name": self.name, "type": self.kind.value}
        if self.nullable:
            result["nullable"] = True
        if self.unique:
            result["unique"] = True
        if self.default is not None:
            result["default"] = self.default
        if self.read_only:
            result["readOnly"] = True
        if self.hint:
            result["hint"] = self.hint
        if self.values:
            result["values"] = list(self.values)
        if self.target:
            result["target"] = self.target
        if self.items:
            result["items"] = self.items.value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], name: str | None = None) -> FieldDef:
        """Create from dictionary representation.

        Accepts both the snake_case and the camelCase (``readOnly``) form.
        """
        items = data.get("items")
        if isinstance(items, dict):
            items = items.get("type")
        return cls(
            name=name or data["name"],
            kind=FieldKind.from_str(data.get("type", data.get("kind"))),
            nullable=data.get("nullable", False),
            unique=data.get("unique", False),
            default=data.get("default"),
            read_only=data.get("readOnly", data.get("read_only", False)),
            hint=data.get("hint"),
            values=tuple(data["values"]) if data.get("values") else None,
            target=data.get("target"),
            items=FieldKind.from_str(items) if items else None,
        )


def field(
    name: str,
    kind: str | FieldKind,
    *,
    nullable: bool = False,
    unique: bool = False,
    default: Any = None,
    read_only: bool = False,
    hint: str | None = None,
    values: tuple[Any, ...] | list[Any] | None = None,
    target: str | None = None,
    items: str | FieldKind | None = None,
) -> FieldDef:
    """Convenience function to create a FieldDef.

    Example:
        >>> title = field("title", "string")
        >>> status = field("status", "enum", values=("draft", "published"))
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    if isinstance(items, str):
        items = FieldKind.from_str(items)
    return FieldDef(
        name=name,
        kind=kind,
        nullable=nullable,
        unique=unique,
        default=default,
        read_only=read_only,
        hint=hint,
        values=tuple(values) if values else None,
        target=target,
        items=items,
    )


@dataclass(frozen=True)
class RelationDef:
    """A declared relation from one entity to another.

    Attributes:
        name: Key under which hydrated data is attached
        kind: belongsTo, hasOne or hasMany
        target: Target entity name
        foreign_key: Foreign-key field name (defaults depend on kind)
        order_by: hasMany ordering as (field, direction) pairs
        limit: hasMany maximum number of related records
    """

    name: str
    kind: RelationKind
    target: str
    foreign_key: str | None = None
    order_by: tuple[tuple[str, str], ...] = ()
    limit: int | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Relation name cannot be empty")
        if not self.target:
            raise ValueError(f"Relation '{self.name}' must declare a target entity")
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"Relation '{self.name}' limit must be >= 0")

    def foreign_key_for(self, source_entity: str) -> str:
        """Resolve the foreign-key field name.

        belongsTo keys live on the source record and default to
        ``<target>Id``; hasOne/hasMany keys live on the target records and
        default to ``<source>Id``.
        """
        if self.foreign_key:
            return self.foreign_key
        if self.kind == RelationKind.BELONGS_TO:
            return f"{self.target}Id"
        return f"{source_entity}Id"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "type": self.kind.value,
            "target": self.target,
        }
        if self.foreign_key:
            result["foreignKey"] = self.foreign_key
        if self.order_by:
            result["orderBy"] = {f: d for f, d in self.order_by}
        if self.limit is not None:
            result["limit"] = self.limit
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], name: str | None = None) -> RelationDef:
        order_by = data.get("orderBy", data.get("order_by")) or ()
        if isinstance(order_by, dict):
            order_by = tuple(order_by.items())
        return cls(
            name=name or data["name"],
            kind=RelationKind.from_str(data.get("type", data.get("kind"))),
            target=data["target"],
            foreign_key=data.get("foreignKey", data.get("foreign_key")),
            order_by=tuple((f, d) for f, d in order_by),
            limit=data.get("limit"),
        )


def _relation(
    kind: RelationKind,
    name: str,
    target: str,
    foreign_key: str | None,
    order_by: Any,
    limit: int | None,
) -> RelationDef:
    if isinstance(order_by, dict):
        order_by = tuple(order_by.items())
    return RelationDef(
        name=name,
        kind=kind,
        target=target,
        foreign_key=foreign_key,
        order_by=tuple(order_by or ()),
        limit=limit,
    )


def belongs_to(name: str, target: str, *, foreign_key: str | None = None) -> RelationDef:
    """Declare that each source record points at one target record."""
    return _relation(RelationKind.BELONGS_TO, name, target, foreign_key, (), None)


def has_one(name: str, target: str, *, foreign_key: str | None = None) -> RelationDef:
    """Declare that one target record points back at the source record."""
    return _relation(RelationKind.HAS_ONE, name, target, foreign_key, (), None)


def has_many(
    name: str,
    target: str,
    *,
    foreign_key: str | None = None,
    order_by: Any = None,
    limit: int | None = None,
) -> RelationDef:
    """Declare that many target records point back at the source record."""
    return _relation(RelationKind.HAS_MANY, name, target, foreign_key, order_by, limit)


@dataclass(frozen=True)
class EntitySchema:
    """Normalized description of one entity.

    Attributes:
        name: Entity name (store slot key)
        fields: Ordered field definitions
        relations: Declared relations
        timestamps: Whether createdAt/updatedAt are stamped
        policies: Row-level security policies for this entity

    Invariants:
        - field names are unique
        - relation names are unique and do not shadow field names

    Example:
        >>> User = EntitySchema(
        ...     name="user",
        ...     fields=(field("email", "email", unique=True), field("name", "string")),
        ...     relations=(has_many("posts", "post", foreign_key="authorId"),),
        ... )
    """

    name: str
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    relations: tuple[RelationDef, ...] = dataclass_field(default_factory=tuple)
    timestamps: bool = False
    policies: tuple[RLSPolicy, ...] = dataclass_field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate entity definition."""
        if not self.name:
            raise ValueError("Entity name cannot be empty")

        field_names = [f.name for f in self.fields]
        if len(field_names) != len(set(field_names)):
            raise ValueError(f"Duplicate field name in entity '{self.name}'")

        relation_names = [r.name for r in self.relations]
        if len(relation_names) != len(set(relation_names)):
            raise ValueError(f"Duplicate relation name in entity '{self.name}'")

        shadowed = set(relation_names) & set(field_names)
        if shadowed:
            raise ValueError(
                f"Relation names {sorted(shadowed)} shadow fields in entity '{self.name}'"
            )

    def get_field(self, name: str) -> FieldDef | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_relation(self, name: str) -> RelationDef | None:
        for r in self.relations:
            if r.name == name:
                return r
        return None

    def get_field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def foreign_key_names(self) -> set[str]:
        """Foreign-key fields that live on this entity's records."""
        return {
            r.foreign_key_for(self.name)
            for r in self.relations
            if r.kind == RelationKind.BELONGS_TO
        }

    def system_field_names(self) -> set[str]:
        """Fields the store manages itself."""
        names = {"id"}
        if self.timestamps:
            names.update(("createdAt", "updatedAt"))
        return names

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation (policies are not serializable)."""
        result: dict[str, Any] = {
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
        }
        if self.relations:
            result["relations"] = [r.to_dict() for r in self.relations]
        if self.timestamps:
            result["timestamps"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntitySchema:
        """Create from dictionary representation.

        ``fields`` and ``relations`` may be lists of dicts with a ``name``
        key or mappings keyed by name.
        """
        raw_fields = data.get("fields", [])
        if isinstance(raw_fields, dict):
            fields = tuple(FieldDef.from_dict(f, name=n) for n, f in raw_fields.items())
        else:
            fields = tuple(FieldDef.from_dict(f) for f in raw_fields)

        raw_relations = data.get("relations", [])
        if isinstance(raw_relations, dict):
            relations = tuple(
                RelationDef.from_dict(r, name=n) for n, r in raw_relations.items()
            )
        else:
            relations = tuple(RelationDef.from_dict(r) for r in raw_relations)

        return cls(
            name=data["name"],
            fields=fields,
            relations=relations,
            timestamps=data.get("timestamps", False),
            policies=tuple(data.get("policies", ())),
        )
