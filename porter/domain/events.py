"""Domain events emitted by the assignment engine.

Dispatched after the transaction commits. change_role_on is observable as
RoleRemoved(old) followed by RoleAssigned(new); there is no combined event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from porter.domain.entities.entity_ref import EntityRef
from porter.domain.value_objects.role import RoleIdentity
from porter.shared.utils.datetime import utc_now


@dataclass(frozen=True)
class RoleEvent:
    """Base for role events: who, on what, which role."""

    assignable: EntityRef
    roleable: EntityRef
    role: RoleIdentity
    occurred_at: datetime = field(default_factory=utc_now)

    @property
    def event_name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        """Serialize for pub/sub (JSON)."""
        return {
            "event": self.event_name,
            "assignable": self.assignable.to_dict(),
            "roleable": self.roleable.to_dict(),
            "role": self.role.name,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class RoleAssigned(RoleEvent):
    """A new (assignable, roleable, role) binding was created."""


@dataclass(frozen=True)
class RoleRemoved(RoleEvent):
    """An (assignable, roleable, role) binding was deleted or replaced."""
