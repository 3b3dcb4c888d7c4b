"""
Security module for mockdb.

This module handles:
- Row-level security filtering against an acting principal
- Sliding-window rate limiting keyed by caller identity
- A redacting, bounded audit trail

Invariants:
    - No applicable RLS policy means no restriction (allow all)
    - Rate limit denial is a returned result, not an exception
    - Limiter instances own their state and sweep thread
"""

from .audit import AuditEvent, AuditFilter, AuditLogger, MemoryAuditStore
from .rate_limit import RateLimitConfig, RateLimiter, RateLimitResult
from .rls import (
    Action,
    Principal,
    RLSPolicy,
    apply_rls,
    create_owner_policy,
    create_public_policy,
    create_role_policy,
    create_status_policy,
    is_allowed,
    policies_for_entity,
)

__all__ = [
    # RLS
    "Action",
    "Principal",
    "RLSPolicy",
    "apply_rls",
    "is_allowed",
    "policies_for_entity",
    "create_owner_policy",
    "create_role_policy",
    "create_public_policy",
    "create_status_policy",
    # Rate limiting
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitResult",
    # Audit
    "AuditEvent",
    "AuditFilter",
    "AuditLogger",
    "MemoryAuditStore",
]
