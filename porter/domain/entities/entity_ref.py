"""Polymorphic entity reference: (entity_type, entity_id) plus optional tenant context.

Porter never loads concrete entities; reads return EntityRef and the
caller maps entity_type back to its own models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class EntityRef:
    """Reference to an assignable or roleable entity.

    Implements every entity capability Porter consumes:
    entity_type / entity_id, get_current_tenant_key (assignables),
    get_tenant_key (roleables) and is_tenant_entity.
    """

    entity_type: str
    entity_id: str | int
    tenant_key: str | None = None
    is_tenant_entity: bool = False

    def __post_init__(self) -> None:
        if not self.entity_type:
            raise ValueError("entity_type must be a non-empty string")
        if self.entity_id is None or self.entity_id == "":
            raise ValueError("entity_id is required")

    def get_current_tenant_key(self) -> str | None:
        return self.tenant_key

    def get_tenant_key(self) -> str | None:
        if self.is_tenant_entity:
            return str(self.entity_id)
        return self.tenant_key

    @property
    def morph_key(self) -> tuple[str, str]:
        """(type, id) with the id normalized to str; used for comparisons and dict keys."""
        return (self.entity_type, str(self.entity_id))

    @classmethod
    def of(cls, entity: Any) -> EntityRef:
        """Build a bare reference (no tenant context) from any entity with entity_type/entity_id."""
        if isinstance(entity, EntityRef):
            return entity
        return cls(entity_type=entity.entity_type, entity_id=entity.entity_id)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.entity_type, "id": self.entity_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntityRef:
        return cls(entity_type=data["type"], entity_id=data["id"])


class TenantEntityMixin:
    """Mixin for models that represent a tenant: their own identity is the tenant key.

    Lets a member hold a role directly on their own tenant entity
    (self-reference exception of the tenant policy).
    """

    is_tenant_entity = True

    def get_tenant_key(self) -> str | None:
        return str(self.entity_id)  # type: ignore[attr-defined]
