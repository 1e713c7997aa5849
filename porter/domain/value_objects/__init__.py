"""Domain value objects."""

from porter.domain.value_objects.role import RoleIdentity

__all__ = ["RoleIdentity"]
