"""Domain entities: polymorphic entity references."""

from porter.domain.entities.entity_ref import EntityRef, TenantEntityMixin

__all__ = ["EntityRef", "TenantEntityMixin"]
