"""
Unit tests for the audit trail.

Tests cover:
- Event validation
- Redaction of sensitive keys
- Bounded storage
- Filtering, ordering and pagination
"""

from datetime import datetime, timedelta, timezone

import pytest

from mockdb.config import AuditSettings
from mockdb.security.audit import AuditEvent, AuditFilter, AuditLogger, MemoryAuditStore

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def event(minutes=0, **kwargs):
    defaults = {"action": "read", "resource_type": "post", "outcome": "success"}
    defaults.update(kwargs)
    return AuditEvent(timestamp=T0 + timedelta(minutes=minutes), **defaults)


class TestAuditEvent:
    """Tests for AuditEvent."""

    def test_defaults(self):
        e = AuditEvent(action="create", resource_type="user", outcome="success")
        assert e.id.startswith("evt-")
        assert e.timestamp.tzinfo is not None

    def test_invalid_outcome(self):
        with pytest.raises(ValueError, match="outcome must be one of"):
            AuditEvent(action="create", resource_type="user", outcome="maybe")


class TestRedaction:
    """Tests for AuditLogger.redact."""

    def test_nested_and_case_insensitive(self):
        """Sensitive keys are matched by substring at any depth."""
        audit = AuditLogger()
        redacted = audit.redact(
            {
                "email": "a@b.io",
                "Password": "hunter2",
                "profile": {"userToken": "t", "bio": "hi"},
                "keys": [{"apiKey": "k", "label": "main"}],
            }
        )
        assert redacted == {
            "email": "a@b.io",
            "Password": "[REDACTED]",
            "profile": {"userToken": "[REDACTED]", "bio": "hi"},
            "keys": [{"apiKey": "[REDACTED]", "label": "main"}],
        }

    def test_custom_redactor(self):
        """A callable can replace the redaction marker."""
        audit = AuditLogger(redact=lambda value, key: f"<{key}:{len(value)}>")
        assert audit.redact({"password": "abc"}) == {"password": "<password:3>"}

    def test_custom_fields(self):
        audit = AuditLogger(settings=AuditSettings(redact_fields=["pin"]))
        assert audit.redact({"pin": "1234", "password": "x"}) == {"pin": "[REDACTED]", "password": "x"}

    def test_log_redacts_changes_and_metadata(self):
        """Stored events never hold sensitive values."""
        audit = AuditLogger()
        stored = audit.log(
            event(changes={"after": {"password": "x"}}, metadata={"authorization": "Bearer y"})
        )
        assert stored.changes == {"after": {"password": "[REDACTED]"}}
        assert stored.metadata == {"authorization": "[REDACTED]"}
        assert audit.query()[0] == stored

    def test_metadata_can_be_dropped(self):
        audit = AuditLogger(settings=AuditSettings(include_metadata=False))
        assert audit.log(event(metadata={"ip": "1.2.3.4"})).metadata is None


class TestMemoryAuditStore:
    """Tests for storage and querying."""

    @pytest.fixture
    def store(self):
        s = MemoryAuditStore()
        s.save(event(0, user_id="ada", action="create", resource_id="p1"))
        s.save(event(1, user_id="bob", action="read", resource_id="p1"))
        s.save(event(2, user_id="ada", action="update", resource_id="p1", outcome="denied"))
        s.save(event(3, user_id="ada", action="read", resource_type="user", resource_id="u1"))
        return s

    def test_bounded(self):
        """The oldest events are dropped beyond max_events."""
        s = MemoryAuditStore(max_events=2)
        for minute in range(5):
            s.save(event(minute))
        assert len(s) == 2
        assert [e.timestamp for e in s.find()] == [T0 + timedelta(minutes=4), T0 + timedelta(minutes=3)]

    def test_default_order_newest_first(self, store):
        assert [e.action for e in store.find()] == ["read", "update", "read", "create"]

    def test_ascending(self, store):
        assert [e.action for e in store.find(AuditFilter(order_dir="asc"))][0] == "create"

    def test_filters(self, store):
        """Filters combine with AND."""
        assert len(store.find(AuditFilter(user_id="ada"))) == 3
        assert len(store.find(AuditFilter(user_id="ada", resource_type="post"))) == 2
        assert len(store.find(AuditFilter(action=["create", "update"]))) == 2
        assert len(store.find(AuditFilter(outcome="denied"))) == 1
        assert len(store.find(AuditFilter(resource_id="u1"))) == 1

    def test_date_range(self, store):
        window = AuditFilter(since=T0 + timedelta(minutes=1), until=T0 + timedelta(minutes=2))
        assert len(store.find(window)) == 2

    def test_pagination_and_count(self, store):
        """count ignores limit and offset."""
        page = AuditFilter(user_id="ada", limit=1, offset=1)
        assert [e.action for e in store.find(page)] == ["update"]
        assert store.count(page) == 3

    def test_clear(self, store):
        store.clear()
        assert len(store) == 0
