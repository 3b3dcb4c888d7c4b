"""
Configuration for mockdb.

Uses pydantic-settings so every setting can be passed as a keyword argument
or, optionally, picked up from the environment. The store itself never
reads files.

Environment loading is the one ambient input the store accepts: a
StoreSettings built implicitly by EntityStore() still honors MOCKDB_*
variables (MOCKDB_FAKER_SEED, MOCKDB_DEBUG, ...). Pass explicit settings
to pin behavior regardless of the environment.

Invariants:
    - All settings have sensible defaults for tests and local development
    - Keyword arguments always win over environment variables
    - With no MOCKDB_* variables set, a store built without settings
      behaves exactly like the defaults

How to change safely:
    - Add new settings with defaults that keep current behavior
    - Keep env prefixes stable, they are part of the public surface
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_REDACT_FIELDS = [
    "password",
    "passwordHash",
    "token",
    "accessToken",
    "refreshToken",
    "secret",
    "apiKey",
    "authorization",
    "creditCard",
    "ssn",
    "socialSecurity",
]


class StoreSettings(BaseSettings):
    """Entity store configuration."""

    faker_seed: Optional[int] = Field(
        default=None, description="Deterministic seed for ids and generated values"
    )
    debug: bool = Field(default=False, description="Verbose per-operation tracing")
    nullable_probability: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Chance that seeding emits None for a nullable field",
    )
    validate_payloads: bool = Field(
        default=True, description="Validate create/update payloads against the schema"
    )

    model_config = {"env_prefix": "MOCKDB_"}


class RateLimiterSettings(BaseSettings):
    """Rate limiter housekeeping configuration."""

    cleanup_interval_seconds: float = Field(default=300.0, gt=0)
    retention_seconds: float = Field(
        default=24 * 60 * 60, gt=0, description="Entries older than this are swept"
    )

    model_config = {"env_prefix": "MOCKDB_RATE_LIMIT_"}


class AuditSettings(BaseSettings):
    """Audit trail configuration."""

    max_events: int = Field(default=10000, gt=0)
    redact_fields: list[str] = Field(default_factory=lambda: list(DEFAULT_REDACT_FIELDS))
    include_metadata: bool = Field(default=True)

    model_config = {"env_prefix": "MOCKDB_AUDIT_"}
