"""Roles API: the registered role catalogue, highest level first."""

from fastapi import APIRouter

from porter.api.v1.dependencies import RegistryDep
from porter.schemas.role import RoleResponse

router = APIRouter()


@router.get("", response_model=list[RoleResponse])
async def list_roles(registry: RegistryDep) -> list[RoleResponse]:
    """List registered roles. Storage keys are not included."""
    return [RoleResponse.model_validate(role) for role in registry.all()]


@router.get("/{name}", response_model=RoleResponse)
async def get_role(name: str, registry: RegistryDep) -> RoleResponse:
    """Get one role by name; 404 ROLE_NOT_FOUND if it is not registered."""
    return RoleResponse.model_validate(registry.by_name(name))


@router.get("/{name}/lower", response_model=list[RoleResponse])
async def list_lower_roles(name: str, registry: RegistryDep) -> list[RoleResponse]:
    """Roles strictly below name (e.g. roles a manager may hand out)."""
    return [RoleResponse.model_validate(role) for role in registry.lower_than(name)]
