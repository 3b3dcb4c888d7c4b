"""
Unit tests for payload validation.

Tests cover:
- Unknown field detection with suggestions
- Type and nullability checks
- Store-managed and foreign-key keys
- Defaults and read-only detection
"""

import pytest

from mockdb.errors import UnknownFieldError, ValidationError
from mockdb.schema.types import EntitySchema, belongs_to, field
from mockdb.schema.validate import (
    apply_defaults,
    known_keys,
    read_only_violations,
    validate_or_raise,
    validate_payload,
)


class TestValidatePayload:
    """Tests for validate_payload / validate_or_raise."""

    def test_valid_partial_payload(self, user_schema):
        """Missing fields are not required."""
        assert validate_payload(user_schema, {"name": "Ada"}) == (True, [])

    def test_unknown_field_suggestion(self, user_schema):
        """Typos raise UnknownFieldError with close matches."""
        with pytest.raises(UnknownFieldError) as exc_info:
            validate_or_raise(user_schema, {"emial": "a@b.io"})

        assert exc_info.value.field_name == "emial"
        assert "email" in exc_info.value.suggestions
        assert "Did you mean" in str(exc_info.value)

    def test_wrong_type(self, post_schema):
        """Type mismatches raise ValidationError listing every problem."""
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(post_schema, {"views": "many", "published": 1})

        assert len(exc_info.value.errors) == 2
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_explicit_none_on_non_nullable(self, post_schema):
        """None is only valid for nullable fields."""
        ok, errors = validate_payload(post_schema, {"title": None})
        assert ok is False
        assert "not nullable" in errors[0]

    def test_system_keys_accepted(self, post_schema):
        """id and timestamps need no declaration."""
        ok, _ = validate_payload(post_schema, {"id": "p1", "createdAt": "2024-01-01"})
        assert ok is True

    def test_undeclared_foreign_key_accepted(self):
        """belongsTo foreign keys are accepted even when not declared as fields."""
        comment = EntitySchema(
            name="comment",
            fields=(field("body", "string"),),
            relations=(belongs_to("post", "post"),),
        )
        assert "postId" in known_keys(comment)
        validate_or_raise(comment, {"body": "nice", "postId": "p1"})


class TestDefaultsAndReadOnly:
    """Tests for apply_defaults / read_only_violations."""

    def test_apply_defaults(self, user_schema):
        """Declared defaults fill missing fields only."""
        assert apply_defaults(user_schema, {"name": "Ada"})["role"] == "member"
        assert apply_defaults(user_schema, {"role": "admin"})["role"] == "admin"

    def test_apply_defaults_copies(self, user_schema):
        """The input payload is not modified."""
        payload = {"name": "Ada"}
        apply_defaults(user_schema, payload)
        assert payload == {"name": "Ada"}

    def test_read_only_violations(self, user_schema):
        """Read-only fields present in a payload are reported."""
        assert read_only_violations(user_schema, {"apiKey": "x", "name": "Ada"}) == ["apiKey"]
        assert read_only_violations(user_schema, {"name": "Ada"}) == []
