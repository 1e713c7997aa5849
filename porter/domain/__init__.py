"""Domain layer: role identity, entity references, events, enums, and exceptions.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from porter.domain.entities.entity_ref import EntityRef, TenantEntityMixin
from porter.domain.enums import (
    AssignmentStrategy,
    CachePurpose,
    IdStrategy,
    KeyStorage,
    TenantViolation,
)
from porter.domain.events import RoleAssigned, RoleEvent, RoleRemoved
from porter.domain.exceptions import (
    ConcurrencyConflictException,
    ConfigurationException,
    InvalidRoleKeyException,
    PorterException,
    RoleNotFoundException,
    RoleRegistryException,
    SqlNotConfiguredException,
    TenantIntegrityException,
)
from porter.domain.value_objects.role import RoleIdentity

__all__ = [
    "AssignmentStrategy",
    "CachePurpose",
    "ConcurrencyConflictException",
    "ConfigurationException",
    "EntityRef",
    "IdStrategy",
    "InvalidRoleKeyException",
    "KeyStorage",
    "PorterException",
    "RoleAssigned",
    "RoleEvent",
    "RoleIdentity",
    "RoleNotFoundException",
    "RoleRegistryException",
    "RoleRemoved",
    "SqlNotConfiguredException",
    "TenantEntityMixin",
    "TenantIntegrityException",
    "TenantViolation",
]
