"""Role catalogue API schemas."""

from pydantic import BaseModel, ConfigDict


class RoleResponse(BaseModel):
    """One registered role (storage keys are never exposed)."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    level: int
    label: str
    description: str
