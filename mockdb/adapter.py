"""
Request-facing adapter for mockdb.

MockAdapter is what generated endpoint handlers call. Each operation runs
the same pipeline:

    rate limit check -> store access -> RLS -> relation hydration -> audit

Invariants:
    - The rate limiter is consulted before any store access
    - List reads apply RLS before pagination, so meta.total and
      meta.has_more describe only rows the principal can see
    - List reads use "list" policies, falling back to "read" policies
      when the entity declares none for "list"
    - Single-row reads hide rejected rows (None); writes raise
      AccessDeniedError
    - update policies must accept both the current row and the merged row
    - The check and the write of update/delete happen under one store lock

How to change safely:
    - Keep the pipeline order; policies see stored rows, never hydrated ones
    - New operations must go through _guard() first
    - Store errors on writes are audited as "failure" and re-raised
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any, Iterable, Optional, Union

from .errors import AccessDeniedError, MockDbError, ValidationError
from .schema.validate import read_only_violations
from .security.audit import AuditEvent, AuditLogger
from .security.rate_limit import RateLimitConfig, RateLimiter
from .security.rls import (
    Action,
    Principal,
    RLSPolicy,
    applicable_policies,
    apply_rls,
    policies_for_entity,
)
from .store.entity_store import EntityStore
from .store.query import QueryOptions, QueryResult, run_query

logger = logging.getLogger(__name__)

ANONYMOUS_KEY = "anonymous"


@dataclass(frozen=True)
class RequestContext:
    """Who is calling.

    Attributes:
        principal: Acting principal, None for anonymous
        rate_key: Rate limit key; defaults to the principal id
        metadata: Extra request info copied into audit events
    """

    principal: Optional[Principal] = None
    rate_key: Optional[str] = None
    metadata: Mapping[str, Any] = dataclass_field(default_factory=dict)

    @property
    def principal_id(self) -> Optional[str]:
        return self.principal.id if self.principal else None


class MockAdapter:
    """CRUD surface with rate limiting, RLS and auditing.

    Example:
        >>> adapter = MockAdapter(store, policies=[create_owner_policy("post", "authorId")])
        >>> ctx = RequestContext(principal=Principal(id=user_id))
        >>> adapter.find_many("post", {"orderBy": {"createdAt": "desc"}}, ctx).data
    """

    def __init__(
        self,
        store: EntityStore,
        policies: Iterable[RLSPolicy] = (),
        rate_limiter: Optional[RateLimiter] = None,
        rate_limit: Optional[RateLimitConfig] = None,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        self.store = store
        self.policies = list(policies)
        self.rate_limiter = rate_limiter
        self.rate_limit = rate_limit
        self.audit = audit

    def policies_for(self, entity: str) -> list[RLSPolicy]:
        """Adapter-level policies plus those declared on the entity schema."""
        schema = self.store.registry.require(entity)
        return policies_for_entity(self.policies, entity) + list(schema.policies)

    def _guard(self, entity: str, action: Action, ctx: RequestContext) -> None:
        if self.rate_limiter is None or self.rate_limit is None:
            return
        key = ctx.rate_key or ctx.principal_id or ANONYMOUS_KEY
        result = self.rate_limiter.check_rate_limit(key, self.rate_limit)
        if not result.allowed:
            self._record(action, entity, "denied", ctx, metadata={"reason": "rate_limited"})
            result.raise_for_limit(key)

    def _record(
        self,
        action: Action,
        entity: str,
        outcome: str,
        ctx: RequestContext,
        resource_id: Optional[str] = None,
        changes: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        if self.audit is None:
            return
        self.audit.log(
            AuditEvent(
                action=action.value,
                resource_type=entity,
                outcome=outcome,
                resource_id=resource_id,
                user_id=ctx.principal_id,
                metadata={**ctx.metadata, **(metadata or {})} or None,
                changes=changes,
            )
        )

    @contextmanager
    def _audit_failures(self, action: Action, entity: str, ctx: RequestContext) -> Iterator[None]:
        try:
            yield
        except AccessDeniedError:
            raise
        except MockDbError as exc:
            self._record(action, entity, "failure", ctx, metadata={"error": exc.code})
            logger.debug(f"{action.value} {entity} failed: {exc.message}")
            raise

    def _deny(self, action: Action, entity: str, ctx: RequestContext, resource_id: Optional[str]):
        self._record(action, entity, "denied", ctx, resource_id=resource_id)
        return AccessDeniedError(
            f"Access denied: {ctx.principal_id or ANONYMOUS_KEY} cannot {action.value} "
            f"{entity}{'/' + resource_id if resource_id else ''}",
            principal_id=ctx.principal_id,
            entity=entity,
            action=action.value,
        )

    def _allowed(self, entity: str, row: Mapping[str, Any], action: Action, ctx: RequestContext) -> bool:
        return bool(apply_rls([row], self.policies_for(entity), ctx.principal, action))

    def _visible(self, entity: str, rows: list[dict[str, Any]], ctx: RequestContext) -> list[dict[str, Any]]:
        policies = self.policies_for(entity)
        action = Action.LIST if applicable_policies(policies, Action.LIST) else Action.READ
        return apply_rls(rows, policies, ctx.principal, action)

    def find_one(
        self,
        entity: str,
        where: Mapping[str, Any],
        ctx: Optional[RequestContext] = None,
        include: Iterable[str] = (),
    ) -> Optional[dict[str, Any]]:
        """Find one record visible to the caller, or None."""
        ctx = ctx or RequestContext()
        self._guard(entity, Action.READ, ctx)

        record = self.store.find_one(entity, where)
        if record is None:
            return None
        if not self._allowed(entity, record, Action.READ, ctx):
            self._record(Action.READ, entity, "denied", ctx, resource_id=record["id"])
            return None

        include = list(include)
        if include:
            record = self.store.include_relations(entity, [record], include)[0]
        self._record(Action.READ, entity, "success", ctx, resource_id=record["id"])
        return record

    def find_many(
        self,
        entity: str,
        options: Union[QueryOptions, Mapping[str, Any], None] = None,
        ctx: Optional[RequestContext] = None,
    ) -> QueryResult:
        """Query records visible to the caller.

        Filtering and sorting run in the store, RLS runs on the full sorted
        result, then pagination and relation hydration.
        """
        ctx = ctx or RequestContext()
        self._guard(entity, Action.LIST, ctx)

        query = QueryOptions.build(options)
        matched = self.store.find_many(
            entity, QueryOptions(where=query.where, order_by=query.order_by)
        )
        visible = self._visible(entity, matched.data, ctx)
        page = run_query(visible, QueryOptions(limit=query.limit, offset=query.offset))

        data = page.data
        if query.include:
            data = self.store.include_relations(entity, data, query.include)

        self._record(
            Action.LIST, entity, "success", ctx, metadata={"returned": len(data)}
        )
        return QueryResult(data=data, meta=page.meta)

    def count(
        self,
        entity: str,
        where: Optional[Mapping[str, Any]] = None,
        ctx: Optional[RequestContext] = None,
    ) -> int:
        """Number of matching records visible to the caller."""
        ctx = ctx or RequestContext()
        self._guard(entity, Action.LIST, ctx)
        matched = self.store.find_many(entity, QueryOptions(where=where))
        return len(self._visible(entity, matched.data, ctx))

    def create(
        self,
        entity: str,
        data: Mapping[str, Any],
        ctx: Optional[RequestContext] = None,
    ) -> dict[str, Any]:
        """Create a record if the caller's create policies admit it.

        Raises:
            AccessDeniedError: If RLS rejects the new row
        """
        ctx = ctx or RequestContext()
        self._guard(entity, Action.CREATE, ctx)

        if not self._allowed(entity, data, Action.CREATE, ctx):
            raise self._deny(Action.CREATE, entity, ctx, None)

        with self._audit_failures(Action.CREATE, entity, ctx):
            record = self.store.create(entity, data)
        self._record(
            Action.CREATE, entity, "success", ctx, resource_id=record["id"],
            changes={"after": record},
        )
        return record

    def update(
        self,
        entity: str,
        where: Mapping[str, Any],
        data: Mapping[str, Any],
        ctx: Optional[RequestContext] = None,
    ) -> Optional[dict[str, Any]]:
        """Update the first matching record the caller may update.

        Returns:
            The updated record, or None if nothing matched

        Raises:
            ValidationError: If data touches read-only fields
            AccessDeniedError: If RLS rejects the target row before or
                after the change
        """
        ctx = ctx or RequestContext()
        self._guard(entity, Action.UPDATE, ctx)

        with self._audit_failures(Action.UPDATE, entity, ctx), self.store.lock:
            blocked = read_only_violations(self.store.registry.require(entity), data)
            if blocked:
                raise ValidationError(
                    f"Read-only fields cannot be updated on {entity}: {blocked}",
                    field_name=blocked[0],
                    errors=[f"Field '{name}' is read-only" for name in blocked],
                )

            existing = self.store.find_one(entity, where)
            if existing is None:
                return None
            if not self._allowed(entity, existing, Action.UPDATE, ctx):
                raise self._deny(Action.UPDATE, entity, ctx, existing["id"])
            # the row as it will be stored must pass as well
            merged = {**existing, **data, "id": existing["id"]}
            if not self._allowed(entity, merged, Action.UPDATE, ctx):
                raise self._deny(Action.UPDATE, entity, ctx, existing["id"])
            updated = self.store.update(entity, {"id": existing["id"]}, data)

        self._record(
            Action.UPDATE, entity, "success", ctx, resource_id=existing["id"],
            changes={"before": existing, "after": updated},
        )
        return updated

    def delete(
        self,
        entity: str,
        where: Mapping[str, Any],
        ctx: Optional[RequestContext] = None,
    ) -> bool:
        """Delete the first matching record the caller may delete.

        Raises:
            AccessDeniedError: If RLS rejects the target row
        """
        ctx = ctx or RequestContext()
        self._guard(entity, Action.DELETE, ctx)

        with self._audit_failures(Action.DELETE, entity, ctx), self.store.lock:
            existing = self.store.find_one(entity, where)
            if existing is None:
                return False
            if not self._allowed(entity, existing, Action.DELETE, ctx):
                raise self._deny(Action.DELETE, entity, ctx, existing["id"])
            deleted = self.store.delete(entity, {"id": existing["id"]})

        self._record(
            Action.DELETE, entity, "success", ctx, resource_id=existing["id"],
            changes={"before": existing},
        )
        return deleted

    def seed(self, counts: Mapping[str, int]) -> dict[str, list[dict[str, Any]]]:
        return self.store.seed(counts)

    def reset(self) -> None:
        self.store.reset()
        if self.rate_limiter is not None:
            self.rate_limiter.reset_all()
