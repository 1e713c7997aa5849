"""Entity capability protocols consumed by the assignment engine.

Entities are duck-typed: any object with entity_type and entity_id can
hold or receive roles. Tenant accessors are optional capabilities and are
called as pure accessors (no side effects expected).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class AssignableEntity(Protocol):
    """A holder of roles (user, team)."""

    @property
    def entity_type(self) -> str: ...

    @property
    def entity_id(self) -> str | int: ...


@runtime_checkable
class RoleableEntity(Protocol):
    """A target on which roles are held (project, organization)."""

    @property
    def entity_type(self) -> str: ...

    @property
    def entity_id(self) -> str | int: ...


@runtime_checkable
class TenantAwareAssignable(Protocol):
    """Assignable exposing the tenant it currently operates in."""

    def get_current_tenant_key(self) -> str | None: ...


@runtime_checkable
class TenantScopedRoleable(Protocol):
    """Roleable exposing the tenant it belongs to (tenant entities return their own key)."""

    def get_tenant_key(self) -> str | None: ...
