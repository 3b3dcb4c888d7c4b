"""
Row-level security for mockdb.

This module filters query results against per-entity policies scoped to an
acting principal:
- Action matching (exact, member-of-set, or the "all" wildcard)
- OR semantics across applicable policies
- Ready-made owner / role / public / status policies

Invariants:
    - If no policy applies to the requested action, every row passes.
      Absence of a policy means no restriction was declared; this
      fail-open default is intentional.
    - Otherwise a row passes iff at least one applicable policy admits it
    - An absent principal (anonymous) fails ownership and role checks
    - Policies never mutate rows

How to change safely:
    - New actions must be added to Action and stay additive
    - Policy filters must tolerate principal=None
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any, Callable, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

Row = TypeVar("Row")


class Action(str, Enum):
    """Operations a policy can be scoped to."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    ALL = "all"


@dataclass(frozen=True)
class Principal:
    """The acting identity a policy is evaluated against.

    Attributes:
        id: Principal identifier (usually a user id)
        roles: Role names held by the principal
        claims: Extra attributes (tenant, org, ...)
    """

    id: str
    roles: tuple[str, ...] = ()
    claims: Mapping[str, Any] = dataclass_field(default_factory=dict)

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)


PolicyFilter = Callable[[Any, Optional[Principal]], bool]
PolicyAction = Union[Action, str, frozenset, tuple, list]


def _action_value(action: Union[Action, str]) -> str:
    return action.value if isinstance(action, Action) else str(action)


@dataclass(frozen=True)
class RLSPolicy:
    """A named row filter for one entity.

    Attributes:
        name: Policy name (diagnostics only)
        entity: Entity the policy belongs to
        action: One action, a collection of actions, or Action.ALL
        filter: (row, principal) -> bool

    Example:
        >>> own_posts = RLSPolicy(
        ...     name="own-posts",
        ...     entity="post",
        ...     action=Action.ALL,
        ...     filter=lambda row, p: p is not None and row.get("authorId") == p.id,
        ... )
    """

    name: str
    entity: str
    action: PolicyAction
    filter: PolicyFilter

    def applies_to(self, action: Union[Action, str]) -> bool:
        """Whether this policy governs the given action."""
        requested = _action_value(action)
        if isinstance(self.action, (frozenset, set, tuple, list)):
            actions = {_action_value(a) for a in self.action}
            return Action.ALL.value in actions or requested in actions
        declared = _action_value(self.action)
        return declared == Action.ALL.value or declared == requested

    def admits(self, row: Any, principal: Optional[Principal]) -> bool:
        return bool(self.filter(row, principal))


def applicable_policies(
    policies: Iterable[RLSPolicy],
    action: Union[Action, str],
) -> list[RLSPolicy]:
    """Policies whose action matches the requested action."""
    return [policy for policy in policies if policy.applies_to(action)]


def policies_for_entity(policies: Iterable[RLSPolicy], entity: str) -> list[RLSPolicy]:
    """Narrow a mixed policy list to one entity."""
    return [policy for policy in policies if policy.entity == entity]


def apply_rls(
    rows: Iterable[Row],
    policies: Iterable[RLSPolicy],
    principal: Optional[Principal] = None,
    action: Union[Action, str] = Action.READ,
) -> list[Row]:
    """Filter rows through the policies applicable to an action.

    Args:
        rows: Rows to filter
        policies: Candidate policies (usually one entity's)
        principal: Acting principal, None for anonymous
        action: The action being performed

    Returns:
        Rows admitted by at least one applicable policy, or every row when
        no policy applies

    Example:
        >>> visible = apply_rls(posts, [owner_policy], Principal(id="u1"), Action.READ)
    """
    rows = list(rows)
    selected = applicable_policies(policies, action)
    if not selected:
        return rows

    visible = [row for row in rows if any(policy.admits(row, principal) for policy in selected)]
    logger.debug(
        f"RLS {_action_value(action)}: {len(visible)}/{len(rows)} rows visible "
        f"via {[p.name for p in selected]}"
    )
    return visible


def is_allowed(
    row: Any,
    policies: Iterable[RLSPolicy],
    principal: Optional[Principal] = None,
    action: Union[Action, str] = Action.READ,
) -> bool:
    """Single-row form of apply_rls."""
    return bool(apply_rls([row], policies, principal, action))


def create_owner_policy(entity: str, owner_field: str) -> RLSPolicy:
    """Owner-only access for every action.

    Example:
        >>> post_owner = create_owner_policy("post", "authorId")
    """

    def owns(row: Mapping[str, Any], principal: Optional[Principal]) -> bool:
        if principal is None:
            return False
        return row.get(owner_field) == principal.id

    return RLSPolicy(name=f"{entity}-owner", entity=entity, action=Action.ALL, filter=owns)


def create_role_policy(
    entity: str,
    allowed_roles: Iterable[str],
    action: PolicyAction = Action.ALL,
) -> RLSPolicy:
    """Access for principals holding any of the given roles.

    Example:
        >>> admin_delete = create_role_policy("user", ["admin"], Action.DELETE)
    """
    roles = tuple(allowed_roles)

    def has_role(_row: Any, principal: Optional[Principal]) -> bool:
        return principal is not None and principal.has_role(*roles)

    return RLSPolicy(
        name=f"{entity}-role-{'-'.join(roles)}",
        entity=entity,
        action=action,
        filter=has_role,
    )


def create_public_policy(entity: str, public_field: str) -> RLSPolicy:
    """Read access to rows flagged public; never dereferences the principal."""
    return RLSPolicy(
        name=f"{entity}-public",
        entity=entity,
        action=Action.READ,
        filter=lambda row, _principal: bool(row.get(public_field)),
    )


def create_status_policy(
    entity: str,
    status_field: str,
    allowed_statuses: Iterable[Any],
) -> RLSPolicy:
    """Read access to rows whose status is in allowed_statuses."""
    statuses = tuple(allowed_statuses)
    return RLSPolicy(
        name=f"{entity}-status-{'-'.join(str(s) for s in statuses)}",
        entity=entity,
        action=Action.READ,
        filter=lambda row, _principal: row.get(status_field) in statuses,
    )
