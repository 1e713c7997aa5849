"""Application ports: entity capabilities and repository protocols."""

from porter.application.interfaces.entities import (
    AssignableEntity,
    RoleableEntity,
    TenantAwareAssignable,
    TenantScopedRoleable,
)
from porter.application.interfaces.repositories import IRosterRepository

__all__ = [
    "AssignableEntity",
    "IRosterRepository",
    "RoleableEntity",
    "TenantAwareAssignable",
    "TenantScopedRoleable",
]
