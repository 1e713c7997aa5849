"""Roster API schemas: entity references, mutation requests and read responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

from porter.application.dtos.assignment import AssignmentResult, RemovalResult
from porter.domain.entities.entity_ref import EntityRef


class EntityRefSchema(BaseModel):
    """Polymorphic entity reference as sent by clients.

    tenant is the assignable's current tenant or the roleable's tenant;
    is_tenant_entity marks a roleable whose own id is its tenant key.
    """

    type: str = Field(..., min_length=1, max_length=255, pattern=r"^[^:]+$")
    id: str | int
    tenant: str | None = Field(default=None, max_length=64)
    is_tenant_entity: bool = False

    def to_ref(self) -> EntityRef:
        return EntityRef(
            entity_type=self.type,
            entity_id=self.id,
            tenant_key=self.tenant,
            is_tenant_entity=self.is_tenant_entity,
        )

    @classmethod
    def from_ref(cls, ref: EntityRef) -> EntityRefSchema:
        return cls(
            type=ref.entity_type,
            id=ref.entity_id,
            tenant=ref.tenant_key,
            is_tenant_entity=ref.is_tenant_entity,
        )


class PairRequest(BaseModel):
    """Request body for POST /roster/remove."""

    assignable: EntityRefSchema
    roleable: EntityRefSchema


class AssignRequest(PairRequest):
    """Request body for POST /roster/assign and POST /roster/change."""

    role: str = Field(..., min_length=1, max_length=255)


class CheckRequest(PairRequest):
    """Request body for POST /roster/check.

    Without role: does the pair hold any role. With at_least: is the held
    role at or above role in the hierarchy.
    """

    role: str | None = Field(default=None, max_length=255)
    at_least: bool = False


class AssignmentResponse(BaseModel):
    """Response for assign and change."""

    assignable: EntityRefSchema
    roleable: EntityRefSchema
    role: str
    created: bool
    removed: list[str]

    @classmethod
    def from_result(cls, result: AssignmentResult) -> AssignmentResponse:
        return cls(
            assignable=EntityRefSchema.from_ref(result.assignable),
            roleable=EntityRefSchema.from_ref(result.roleable),
            role=result.role.name,
            created=result.created,
            removed=[r.name for r in result.removed],
        )


class RemovalResponse(BaseModel):
    """Response for remove."""

    removed: list[str]
    removed_count: int

    @classmethod
    def from_result(cls, result: RemovalResult) -> RemovalResponse:
        return cls(removed=[r.name for r in result.removed], removed_count=result.removed_count)


class CheckResponse(BaseModel):
    """Response for POST /roster/check."""

    granted: bool
    current_role: str | None = None


class ParticipantResponse(BaseModel):
    participant_type: str
    participant_id: str | int
    role_name: str | None
    role_label: str | None
    role_description: str | None


class ParticipantsResponse(BaseModel):
    """Response for GET /roster/{roleable_type}/{roleable_id}/participants."""

    roleable: EntityRefSchema
    participants: list[ParticipantResponse]
    total: int


class AssignedEntitiesResponse(BaseModel):
    """Response for GET /roster/assignables/.../entities/{roleable_type}."""

    assignable: EntityRefSchema
    roleable_type: str
    entities: list[EntityRefSchema]
    total: int
