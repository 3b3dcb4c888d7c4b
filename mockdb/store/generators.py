"""
Fake value generation for seeding.

Generation is a strategy table indexed by FieldKind, plus a registry of
named hints that override the kind. Hints may be:
- a name registered with FakeDataGenerator.register_hint()
- a dotted Faker-JS style path such as "person.fullName"
- a bare Faker provider method such as "company" or "phone_number"

All randomness (values, ids, nullable coin flips, link picks) comes from
one Faker instance so a single seed makes a whole run reproducible.

Invariants:
    - "id" and read-only fields are never generated
    - ref fields generate nothing; seeding links them afterwards
    - unknown hints fall back to two lorem words, never an error
    - a unique value is either unused or UniqueValuesExhausted is raised;
      only string, email and url values are ever suffixed to get there
"""

from __future__ import annotations

import logging
import re
from datetime import timezone
from typing import Any, Callable, Dict, Optional

from faker import Faker

from ..schema.types import EntitySchema, FieldDef, FieldKind

logger = logging.getLogger(__name__)

SKIP = object()

UNIQUE_ATTEMPTS = 10

KindGenerator = Callable[[Faker, FieldDef], Any]
HintGenerator = Callable[[Faker], Any]


def _words(faker: Faker, count: int) -> str:
    return " ".join(faker.words(count))


def _recent(faker: Faker) -> Any:
    return faker.date_time_between(start_date="-30d", end_date="now", tzinfo=timezone.utc)


_SCALAR_KINDS = (
    FieldKind.STRING,
    FieldKind.UUID,
    FieldKind.EMAIL,
    FieldKind.URL,
    FieldKind.NUMBER,
    FieldKind.INT,
    FieldKind.FLOAT,
    FieldKind.BOOLEAN,
)

# free-text kinds whose colliding values may be made unique with a suffix
_SUFFIXABLE_KINDS = (FieldKind.STRING, FieldKind.EMAIL, FieldKind.URL)


class UniqueValuesExhausted(Exception):
    """A unique field of a bounded kind has no unused values left.

    Raised by FakeDataGenerator.generate_record(); the seeder stops the
    entity's batch when it sees one.
    """

    def __init__(self, field_name: str, used: int) -> None:
        super().__init__(f"No unused values left for unique field '{field_name}' ({used} taken)")
        self.field_name = field_name
        self.used = used


def _array(faker: Faker, field_def: FieldDef) -> list[Any]:
    size = faker.random_int(1, 3)
    if field_def.items not in _SCALAR_KINDS:
        return faker.words(size)
    item_def = FieldDef(name=f"{field_def.name}[]", kind=field_def.items)
    item_gen = KIND_GENERATORS[field_def.items]
    return [item_gen(faker, item_def) for _ in range(size)]


def _object(faker: Faker, field_def: FieldDef) -> dict[str, Any]:
    return {"label": faker.word(), "value": faker.random_int(0, 100)}


KIND_GENERATORS: Dict[FieldKind, KindGenerator] = {
    FieldKind.STRING: lambda f, _: _words(f, 3),
    FieldKind.UUID: lambda f, _: f.uuid4(),
    FieldKind.EMAIL: lambda f, _: f.email(),
    FieldKind.URL: lambda f, _: f.url(),
    FieldKind.NUMBER: lambda f, _: f.random_int(0, 1000),
    FieldKind.INT: lambda f, _: f.random_int(0, 1000),
    FieldKind.FLOAT: lambda f, _: round(f.random.uniform(0, 1000), 2),
    FieldKind.BOOLEAN: lambda f, _: f.pybool(),
    FieldKind.DATE: lambda f, _: _recent(f),
    FieldKind.ENUM: lambda f, d: f.random_element(d.values) if d.values else SKIP,
    FieldKind.ARRAY: _array,
    FieldKind.OBJECT: _object,
    FieldKind.JSON: _object,
    FieldKind.REF: lambda f, _: SKIP,
}

DEFAULT_HINTS: Dict[str, HintGenerator] = {
    "person.fullName": lambda f: f.name(),
    "person.firstName": lambda f: f.first_name(),
    "person.lastName": lambda f: f.last_name(),
    "person.jobTitle": lambda f: f.job(),
    "person.bio": lambda f: f.sentence(),
    "internet.email": lambda f: f.email(),
    "internet.url": lambda f: f.url(),
    "internet.userName": lambda f: f.user_name(),
    "internet.avatar": lambda f: f.image_url(),
    "internet.password": lambda f: f.password(),
    "internet.ip": lambda f: f.ipv4(),
    "image.url": lambda f: f.image_url(),
    "image.avatar": lambda f: f.image_url(),
    "lorem.word": lambda f: f.word(),
    "lorem.words": lambda f: _words(f, 3),
    "lorem.sentence": lambda f: f.sentence(),
    "lorem.paragraph": lambda f: f.paragraph(),
    "lorem.paragraphs": lambda f: "\n\n".join(f.paragraphs(3)),
    "lorem.slug": lambda f: f.slug(),
    "company.name": lambda f: f.company(),
    "company.catchPhrase": lambda f: f.catch_phrase(),
    "location.city": lambda f: f.city(),
    "location.country": lambda f: f.country(),
    "location.streetAddress": lambda f: f.street_address(),
    "location.zipCode": lambda f: f.postcode(),
    "phone.number": lambda f: f.phone_number(),
    "string.uuid": lambda f: f.uuid4(),
    "date.past": lambda f: f.date_time_between(start_date="-1y", end_date="now", tzinfo=timezone.utc),
    "date.recent": _recent,
    "date.future": lambda f: f.date_time_between(start_date="now", end_date="+1y", tzinfo=timezone.utc),
    "commerce.productName": lambda f: _words(f, 2).title(),
    "commerce.price": lambda f: round(f.random.uniform(1, 1000), 2),
    "color.human": lambda f: f.color_name(),
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class FakeDataGenerator:
    """Produces synthetic records from entity schemas.

    Each instance owns its Faker and its hint/kind tables, so tests can
    register custom hints without affecting other instances.

    Example:
        >>> gen = FakeDataGenerator(seed=42)
        >>> gen.register_hint("slugTitle", lambda f: f.slug())
        >>> record = gen.generate_record(post_schema)
    """

    def __init__(self, seed: Optional[int] = None, nullable_probability: float = 0.1) -> None:
        self.faker = Faker()
        if seed is not None:
            self.faker.seed_instance(seed)
        self.nullable_probability = nullable_probability
        self._hints: Dict[str, HintGenerator] = dict(DEFAULT_HINTS)
        self._kinds: Dict[FieldKind, KindGenerator] = dict(KIND_GENERATORS)

    @property
    def random(self) -> Any:
        """The seeded random.Random behind the Faker instance."""
        return self.faker.random

    def uuid(self) -> str:
        return self.faker.uuid4()

    def register_hint(self, name: str, generator: HintGenerator) -> None:
        """Register (or replace) a named hint generator."""
        self._hints[name] = generator

    def register_kind(self, kind: FieldKind, generator: KindGenerator) -> None:
        """Replace the generator used for a field kind."""
        self._kinds[kind] = generator

    def from_hint(self, hint: str) -> Any:
        """Resolve a hint to a value.

        Lookup order: registry, bare Faker method, last dotted segment as a
        snake_case Faker method, then two lorem words.
        """
        registered = self._hints.get(hint)
        if registered is not None:
            return registered(self.faker)

        for candidate in (hint, _to_snake(hint.rsplit(".", 1)[-1])):
            provider = getattr(self.faker, candidate, None)
            if callable(provider):
                try:
                    return provider()
                except TypeError:
                    # provider requires arguments; not usable as a hint
                    continue

        logger.debug(f"Unknown hint '{hint}', falling back to lorem words")
        return _words(self.faker, 2)

    def generate_value(self, field_def: FieldDef) -> Any:
        """Generate one value for a field, or SKIP when none applies."""
        if field_def.hint:
            return self.from_hint(field_def.hint)
        generator = self._kinds.get(field_def.kind)
        if generator is None:
            return SKIP
        return generator(self.faker, field_def)

    def generate_record(
        self,
        schema: EntitySchema,
        taken: Optional[Dict[str, set]] = None,
    ) -> dict[str, Any]:
        """Generate a record payload for an entity.

        Args:
            schema: Entity schema to generate for
            taken: Per unique field, hashable values already in use; new
                values are added to it

        Returns:
            Payload without id or store-managed timestamps

        Raises:
            UniqueValuesExhausted: If a bounded unique field ran out of values
        """
        data: dict[str, Any] = {}
        skip = schema.system_field_names()

        for field_def in schema.fields:
            if field_def.name in skip or field_def.read_only:
                continue

            value = self.generate_value(field_def)
            if field_def.unique and taken is not None and value is not SKIP:
                value = self._unique_value(field_def, value, taken.setdefault(field_def.name, set()))

            if field_def.nullable and self.random.random() < self.nullable_probability:
                value = None

            if value is SKIP:
                if field_def.default is None:
                    continue
                value = field_def.default

            data[field_def.name] = value

        return data

    def _unique_value(self, field_def: FieldDef, value: Any, used: set) -> Any:
        for _ in range(UNIQUE_ATTEMPTS):
            try:
                if value not in used:
                    used.add(value)
                    return value
            except TypeError:
                return value
            value = self.generate_value(field_def)
        if field_def.kind not in _SUFFIXABLE_KINDS or not isinstance(value, str):
            raise UniqueValuesExhausted(field_def.name, len(used))
        suffixed = f"{value}-{self.faker.random_int(0, 10**9)}"
        used.add(suffixed)
        return suffixed
