"""
Unit tests for configuration.

Tests cover:
- Defaults
- Environment overrides, including implicitly built store settings
- Range validation
"""

import pytest
from pydantic import ValidationError

from mockdb.config import DEFAULT_REDACT_FIELDS, AuditSettings, RateLimiterSettings, StoreSettings
from mockdb.store.entity_store import EntityStore


class TestStoreSettings:
    """Tests for StoreSettings."""

    def test_defaults(self):
        settings = StoreSettings()
        assert settings.faker_seed is None
        assert settings.debug is False
        assert settings.nullable_probability == 0.1
        assert settings.validate_payloads is True

    def test_env_override(self, monkeypatch):
        """MOCKDB_* variables are picked up."""
        monkeypatch.setenv("MOCKDB_FAKER_SEED", "7")
        monkeypatch.setenv("MOCKDB_DEBUG", "true")
        settings = StoreSettings()
        assert settings.faker_seed == 7
        assert settings.debug is True

    def test_kwargs_win_over_env(self, monkeypatch):
        monkeypatch.setenv("MOCKDB_FAKER_SEED", "7")
        assert StoreSettings(faker_seed=1).faker_seed == 1

    def test_implicit_store_settings_read_env(self, monkeypatch):
        """A store built without settings still honors MOCKDB_* variables."""
        monkeypatch.setenv("MOCKDB_FAKER_SEED", "7")
        monkeypatch.setenv("MOCKDB_DEBUG", "1")

        implicit = EntityStore()
        pinned = EntityStore(StoreSettings(faker_seed=None, debug=False))

        assert implicit.settings.faker_seed == 7
        assert implicit.settings.debug is True
        assert implicit.generator.uuid() == EntityStore(StoreSettings(faker_seed=7)).generator.uuid()
        assert pinned.settings.faker_seed is None
        assert pinned.settings.debug is False

    @pytest.mark.parametrize("probability", [-0.1, 1.5])
    def test_probability_range(self, probability):
        """nullable_probability must lie in [0, 1]."""
        with pytest.raises(ValidationError):
            StoreSettings(nullable_probability=probability)


class TestOtherSettings:
    """Tests for limiter and audit settings."""

    def test_rate_limiter_defaults(self):
        settings = RateLimiterSettings()
        assert settings.cleanup_interval_seconds == 300
        assert settings.retention_seconds == 24 * 60 * 60

    def test_rate_limiter_env(self, monkeypatch):
        monkeypatch.setenv("MOCKDB_RATE_LIMIT_RETENTION_SECONDS", "60")
        assert RateLimiterSettings().retention_seconds == 60

    def test_positive_intervals(self):
        with pytest.raises(ValidationError):
            RateLimiterSettings(cleanup_interval_seconds=0)

    def test_audit_defaults(self):
        settings = AuditSettings()
        assert settings.max_events == 10000
        assert settings.redact_fields == DEFAULT_REDACT_FIELDS
        assert settings.redact_fields is not DEFAULT_REDACT_FIELDS
