"""
Error types for mockdb.

This module defines all exception types raised by the store:
- MockDbError: Base exception
- SchemaNotFoundError: Unknown entity referenced by an operation
- ValidationError: Payload validation failures
- UnknownFieldError: Unknown field in payload
- DuplicateIdError / UniqueConstraintError: Collection invariants
- AccessDeniedError: Row-level security rejected a single-row operation
- RateLimitExceededError: Caller exceeded its request window

Invariants:
    - All errors inherit from MockDbError
    - Lookup misses are never errors (None / False instead)
    - Errors include context for debugging
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class MockDbError(Exception):
    """Base exception for all mockdb errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "MOCKDB_ERROR"
        self.details = details or {}


class SchemaNotFoundError(MockDbError):
    """An operation referenced an entity that was never initialized.

    This is a programmer error (schema/caller mismatch), never a
    recoverable condition.
    """

    def __init__(self, entity: str) -> None:
        super().__init__(
            f"Entity '{entity}' not found",
            code="SCHEMA_NOT_FOUND",
            details={"entity": entity},
        )
        self.entity = entity


class ValidationError(MockDbError):
    """Payload validation failed.

    Raised when:
    - Field value has wrong type
    - Non-nullable field is set to None
    - Query options are malformed
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class UnknownFieldError(MockDbError):
    """Unknown field in payload.

    Includes suggestions for similar field names.
    """

    def __init__(
        self,
        field_name: str,
        entity: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown field '{field_name}' in entity '{entity}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            code="UNKNOWN_FIELD",
            details={
                "field_name": field_name,
                "entity": entity,
                "suggestions": suggestions,
            },
        )
        self.field_name = field_name
        self.entity = entity
        self.suggestions = suggestions


class DuplicateIdError(MockDbError):
    """A record with the given id already exists in the collection."""

    def __init__(self, entity: str, record_id: str) -> None:
        super().__init__(
            f"Record '{record_id}' already exists in '{entity}'",
            code="DUPLICATE_ID",
            details={"entity": entity, "id": record_id},
        )
        self.entity = entity
        self.record_id = record_id


class UniqueConstraintError(MockDbError):
    """A unique field value is already held by another record."""

    def __init__(self, entity: str, field_name: str, value: Any) -> None:
        super().__init__(
            f"Value {value!r} for unique field '{entity}.{field_name}' already exists",
            code="UNIQUE_VIOLATION",
            details={"entity": entity, "field": field_name, "value": value},
        )
        self.entity = entity
        self.field_name = field_name
        self.value = value


class RegistryFrozenError(MockDbError):
    """Raised when attempting to modify a frozen registry."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="REGISTRY_FROZEN")


class DuplicateRegistrationError(MockDbError):
    """Raised when attempting to register an entity name twice."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DUPLICATE_REGISTRATION")


class AccessDeniedError(MockDbError):
    """Access denied by row-level security.

    Raised when:
    - A create payload is rejected by every applicable policy
    - The target row of an update/delete is not visible to the principal
    """

    def __init__(
        self,
        message: str,
        principal_id: Optional[str],
        entity: str,
        action: str,
    ) -> None:
        super().__init__(
            message,
            code="ACCESS_DENIED",
            details={
                "principal_id": principal_id,
                "entity": entity,
                "action": action,
            },
        )
        self.principal_id = principal_id
        self.entity = entity
        self.action = action


class RateLimitExceededError(MockDbError):
    """Rate limit exceeded.

    The limiter itself never raises this; callers convert a denied
    RateLimitResult into it when they want an exception.
    """

    def __init__(self, key: str, retry_after: int, limit: int) -> None:
        super().__init__(
            f"Rate limit exceeded. Retry after {retry_after} seconds",
            code="RATE_LIMITED",
            details={"key": key, "retry_after": retry_after, "limit": limit},
        )
        self.key = key
        self.retry_after = retry_after
        self.limit = limit
