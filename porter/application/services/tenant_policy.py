"""Tenant integrity policy.

An assignment may not cross tenant boundaries when multitenancy is on.
The decision table lives in evaluate_tenant_integrity (pure, no entities);
TenantPolicy resolves tenant keys from entities and raises.
"""

from __future__ import annotations

from typing import Any

from porter.application.interfaces.entities import (
    TenantAwareAssignable,
    TenantScopedRoleable,
)
from porter.domain.enums import TenantViolation
from porter.domain.exceptions import TenantIntegrityException


def resolve_assignable_tenant(assignable: Any) -> str | None:
    """Current tenant of an assignable, or None when it exposes no tenant context."""
    if not isinstance(assignable, TenantAwareAssignable):
        return None
    value = assignable.get_current_tenant_key()
    return str(value) if value is not None else None


def resolve_roleable_tenant(roleable: Any) -> str | None:
    """Tenant a roleable belongs to; tenant entities return their own key."""
    if not isinstance(roleable, TenantScopedRoleable):
        return None
    value = roleable.get_tenant_key()
    return str(value) if value is not None else None


def is_tenant_entity(roleable: Any) -> bool:
    return bool(getattr(roleable, "is_tenant_entity", False))


def evaluate_tenant_integrity(
    enabled: bool,
    assignable_tenant: str | None,
    roleable_tenant: str | None,
    roleable_is_tenant_entity: bool = False,
) -> TenantViolation | None:
    """Return the violation for an assignment, or None if permitted.

    Rules, first match wins:
        1. multitenancy disabled: permitted.
        2. roleable is a tenant entity: permitted only when the assignable's
           current tenant is that tenant.
        3. neither side has a tenant: permitted.
        4. exactly one side has a tenant, or the tenants differ: rejected.
    """
    if not enabled:
        return None
    if roleable_is_tenant_entity:
        if assignable_tenant is None:
            return TenantViolation.ASSIGNABLE_WITHOUT_TENANT
        if assignable_tenant != roleable_tenant:
            return TenantViolation.MISMATCH
        return None
    if assignable_tenant is None and roleable_tenant is None:
        return None
    if assignable_tenant is None:
        return TenantViolation.ASSIGNABLE_WITHOUT_TENANT
    if roleable_tenant is None:
        return TenantViolation.ROLEABLE_WITHOUT_TENANT
    if assignable_tenant != roleable_tenant:
        return TenantViolation.MISMATCH
    return None


def ensure_tenant_integrity(
    enabled: bool,
    assignable_tenant: str | None,
    roleable_tenant: str | None,
    roleable_is_tenant_entity: bool = False,
) -> None:
    """Raise TenantIntegrityException when evaluate_tenant_integrity rejects."""
    violation = evaluate_tenant_integrity(
        enabled, assignable_tenant, roleable_tenant, roleable_is_tenant_entity
    )
    if violation is not None:
        raise TenantIntegrityException(violation, assignable_tenant, roleable_tenant)


class TenantPolicy:
    """Multitenancy switch plus entity-level validation.

    validate() is called by every mutating engine operation before any
    write and returns the tenant id to denormalize onto the roster row.
    """

    def __init__(
        self,
        enabled: bool = False,
        auto_scope: bool = True,
        cache_per_tenant: bool = True,
    ) -> None:
        self.enabled = enabled
        self.auto_scope = auto_scope
        self.cache_per_tenant = cache_per_tenant

    @classmethod
    def from_settings(cls, settings: Any) -> TenantPolicy:
        return cls(
            enabled=settings.multitenancy_enabled,
            auto_scope=settings.multitenancy_auto_scope,
            cache_per_tenant=settings.multitenancy_cache_per_tenant,
        )

    def validate(self, assignable: Any, roleable: Any) -> str | None:
        """Check the pair and return the tenant id to store (None when disabled).

        Raises:
            TenantIntegrityException: the pair crosses tenant boundaries.
        """
        if not self.enabled:
            return None
        assignable_tenant = resolve_assignable_tenant(assignable)
        roleable_tenant = resolve_roleable_tenant(roleable)
        ensure_tenant_integrity(
            True, assignable_tenant, roleable_tenant, is_tenant_entity(roleable)
        )
        return roleable_tenant if roleable_tenant is not None else assignable_tenant

    def read_scope(self, tenant: str | None) -> str | None:
        """Tenant filter for read queries; None means unscoped."""
        if not (self.enabled and self.auto_scope):
            return None
        return tenant

    @property
    def segments_cache(self) -> bool:
        """True when cache keys carry a tenant segment."""
        return self.enabled and self.cache_per_tenant

    def cache_tenant(self, tenant: str | None) -> str | None:
        """Tenant segment for cache keys; None means no segment."""
        if not self.segments_cache:
            return None
        return tenant
