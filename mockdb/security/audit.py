"""
Audit trail for mockdb operations.

This module keeps a bounded, in-memory log of who did what:
- AuditEvent records (action, resource, outcome, changes)
- MemoryAuditStore with filtering, ordering and pagination
- AuditLogger that redacts sensitive keys before storing

Invariants:
    - The store never holds more than max_events; oldest are dropped first
    - Redaction matches key names case-insensitively by substring and
      recurses into nested mappings and lists
    - Events are stored as given after redaction; they are never mutated
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, replace
from dataclasses import field as dataclass_field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Union

from ..config import AuditSettings

logger = logging.getLogger(__name__)

OUTCOMES = ("success", "failure", "denied")

REDACTED = "[REDACTED]"


@dataclass(frozen=True)
class AuditEvent:
    """One audited operation.

    Attributes:
        action: Action performed (create, read, update, delete, list)
        resource_type: Entity name
        outcome: success, failure or denied
        resource_id: Affected record id, if any
        user_id: Acting principal id, if any
        metadata: Free-form context
        changes: {"before": ..., "after": ...} for writes
    """

    action: str
    resource_type: str
    outcome: str
    resource_id: Optional[str] = None
    user_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    changes: Optional[dict[str, Any]] = None
    id: str = dataclass_field(default_factory=lambda: f"evt-{uuid.uuid4().hex[:16]}")
    timestamp: datetime = dataclass_field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.outcome not in OUTCOMES:
            raise ValueError(f"outcome must be one of {OUTCOMES}, got '{self.outcome}'")


@dataclass(frozen=True)
class AuditFilter:
    user_id: Optional[str] = None
    action: Union[str, Iterable[str], None] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    outcome: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    order_by: str = "timestamp"
    order_dir: str = "desc"
    limit: Optional[int] = 100
    offset: int = 0


class MemoryAuditStore:
    """Bounded in-memory event store."""

    def __init__(self, max_events: int = 10000) -> None:
        self.max_events = max_events
        self._events: list[AuditEvent] = []

    def save(self, event: AuditEvent) -> None:
        self._events.append(event)
        if len(self._events) > self.max_events:
            self._events = self._events[-self.max_events:]

    def find(self, audit_filter: Optional[AuditFilter] = None) -> list[AuditEvent]:
        """Events matching the filter, ordered and paginated."""
        f = audit_filter or AuditFilter()
        results = [e for e in self._events if self._matches(e, f)]

        # stable sort; events without the key go last
        present = [e for e in results if getattr(e, f.order_by, None) is not None]
        missing = [e for e in results if getattr(e, f.order_by, None) is None]
        present.sort(key=lambda e: getattr(e, f.order_by), reverse=f.order_dir == "desc")
        results = present + missing

        end = None if f.limit is None else f.offset + f.limit
        return results[f.offset:end]

    def count(self, audit_filter: Optional[AuditFilter] = None) -> int:
        f = replace(audit_filter or AuditFilter(), limit=None, offset=0)
        return len(self.find(f))

    def clear(self) -> None:
        self._events = []

    def __len__(self) -> int:
        return len(self._events)

    @staticmethod
    def _matches(event: AuditEvent, f: AuditFilter) -> bool:
        if f.user_id and event.user_id != f.user_id:
            return False
        if f.action:
            actions = {f.action} if isinstance(f.action, str) else set(f.action)
            if event.action not in actions:
                return False
        if f.resource_type and event.resource_type != f.resource_type:
            return False
        if f.resource_id and event.resource_id != f.resource_id:
            return False
        if f.outcome and event.outcome != f.outcome:
            return False
        if f.since and event.timestamp < f.since:
            return False
        if f.until and event.timestamp > f.until:
            return False
        return True


class AuditLogger:
    """Redacts sensitive data and writes events to a store.

    Example:
        >>> audit = AuditLogger(MemoryAuditStore())
        >>> audit.log(AuditEvent(action="create", resource_type="user", outcome="success",
        ...                      changes={"after": {"email": "a@b.c", "password": "x"}}))
        >>> audit.query()[0].changes["after"]["password"]
        '[REDACTED]'
    """

    def __init__(
        self,
        store: Optional[MemoryAuditStore] = None,
        settings: Optional[AuditSettings] = None,
        redact: Optional[Callable[[Any, str], Any]] = None,
    ) -> None:
        self.settings = settings or AuditSettings()
        self.store = store or MemoryAuditStore(self.settings.max_events)
        self._redact_fields = [name.lower() for name in self.settings.redact_fields]
        self._redact = redact

    def _should_redact(self, key: str) -> bool:
        lowered = key.lower()
        return any(name in lowered for name in self._redact_fields)

    def redact(self, value: Any) -> Any:
        """Copy of value with sensitive keys replaced."""
        if isinstance(value, Mapping):
            result = {}
            for key, item in value.items():
                if self._should_redact(str(key)):
                    result[key] = self._redact(item, key) if self._redact else REDACTED
                else:
                    result[key] = self.redact(item)
            return result
        if isinstance(value, (list, tuple)):
            return [self.redact(item) for item in value]
        return value

    def log(self, event: AuditEvent) -> AuditEvent:
        """Redact and store an event; returns the stored form."""
        sanitized = replace(
            event,
            changes=self.redact(event.changes) if event.changes else None,
            metadata=(
                self.redact(event.metadata)
                if self.settings.include_metadata and event.metadata
                else None
            ),
        )
        self.store.save(sanitized)
        logger.debug(
            f"Audit {sanitized.action} {sanitized.resource_type}"
            f"{'/' + sanitized.resource_id if sanitized.resource_id else ''}: {sanitized.outcome}"
        )
        return sanitized

    def query(self, audit_filter: Optional[AuditFilter] = None) -> list[AuditEvent]:
        return self.store.find(audit_filter)
