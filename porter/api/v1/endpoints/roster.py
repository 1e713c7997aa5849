"""Roster API: assign, remove and change roles; role checks and listings."""

from typing import Annotated

from fastapi import APIRouter, Query

from porter.api.v1.dependencies import EngineDep
from porter.domain.entities.entity_ref import EntityRef
from porter.schemas.roster import (
    AssignedEntitiesResponse,
    AssignmentResponse,
    AssignRequest,
    CheckRequest,
    CheckResponse,
    EntityRefSchema,
    PairRequest,
    ParticipantResponse,
    ParticipantsResponse,
    RemovalResponse,
)

router = APIRouter()


@router.post("/assign", response_model=AssignmentResponse)
async def assign_role(body: AssignRequest, engine: EngineDep) -> AssignmentResponse:
    """Assign role to the pair using the configured strategy (replace or add)."""
    result = await engine.assign(body.assignable.to_ref(), body.roleable.to_ref(), body.role)
    return AssignmentResponse.from_result(result)


@router.post("/remove", response_model=RemovalResponse)
async def remove_roles(body: PairRequest, engine: EngineDep) -> RemovalResponse:
    """Remove every role of the pair. Removing nothing is not an error."""
    result = await engine.remove(body.assignable.to_ref(), body.roleable.to_ref())
    return RemovalResponse.from_result(result)


@router.post("/change", response_model=AssignmentResponse)
async def change_role(body: AssignRequest, engine: EngineDep) -> AssignmentResponse:
    """Switch the pair's role; behaves as assign when the pair holds none."""
    result = await engine.change_role_on(
        body.assignable.to_ref(), body.roleable.to_ref(), body.role
    )
    return AssignmentResponse.from_result(result)


@router.post("/check", response_model=CheckResponse)
async def check_role(body: CheckRequest, engine: EngineDep) -> CheckResponse:
    """Check the pair: any role, an exact role, or at least a role (at_least=true)."""
    assignable, roleable = body.assignable.to_ref(), body.roleable.to_ref()
    if body.role is None:
        granted = await engine.has_any_role_on(assignable, roleable)
    elif body.at_least:
        granted = await engine.is_at_least_on(assignable, roleable, body.role)
    else:
        granted = await engine.has_role_on(assignable, roleable, body.role)
    current = await engine.get_role_on(assignable, roleable)
    return CheckResponse(granted=granted, current_role=current)


@router.get("/{roleable_type}/{roleable_id}/participants", response_model=ParticipantsResponse)
async def list_participants(
    roleable_type: str,
    roleable_id: str,
    engine: EngineDep,
    tenant: Annotated[str | None, Query(max_length=64)] = None,
    role: Annotated[str | None, Query(max_length=255)] = None,
) -> ParticipantsResponse:
    """Participants of a roleable with their roles, optionally only those holding role."""
    roleable = EntityRef(roleable_type, roleable_id, tenant_key=tenant)
    collection = await engine.get_participants_with_roles(roleable)
    if role is not None:
        collection = collection.with_role(engine.ensure_role_exists(role).name)
    participants = [ParticipantResponse(**item) for item in collection.as_basic_list()]
    return ParticipantsResponse(
        roleable=EntityRefSchema.from_ref(roleable),
        participants=participants,
        total=len(participants),
    )


@router.get(
    "/assignables/{assignable_type}/{assignable_id}/entities/{roleable_type}",
    response_model=AssignedEntitiesResponse,
)
async def list_assigned_entities(
    assignable_type: str,
    assignable_id: str,
    roleable_type: str,
    engine: EngineDep,
    tenant: Annotated[str | None, Query(max_length=64)] = None,
    ids: Annotated[list[str] | None, Query()] = None,
) -> AssignedEntitiesResponse:
    """Roleables of roleable_type the assignable holds any role on (optionally limited to ids)."""
    assignable = EntityRef(assignable_type, assignable_id, tenant_key=tenant)
    if ids:
        entities = await engine.get_assigned_entities_by_keys_by_type(
            assignable, list(ids), roleable_type
        )
    else:
        entities = await engine.get_assigned_entities_by_type(assignable, roleable_type)
    return AssignedEntitiesResponse(
        assignable=EntityRefSchema.from_ref(assignable),
        roleable_type=roleable_type,
        entities=[EntityRefSchema.from_ref(e) for e in entities],
        total=len(entities),
    )
