"""Presentation-layer dependency injection.

The assignment engine and role registry are built once in the lifespan
(porter.core.lifespan) and read from app.state here; routes never
construct services themselves.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from porter.application.services.assignment_engine import AssignmentEngine
from porter.application.services.role_registry import RoleRegistry
from porter.domain.exceptions import SqlNotConfiguredException


def get_assignment_engine(request: Request) -> AssignmentEngine:
    """Return the process-wide engine; 503 until startup has wired it."""
    engine = getattr(request.app.state, "assignment_engine", None)
    if engine is None:
        raise SqlNotConfiguredException()
    return engine


def get_role_registry(
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
) -> RoleRegistry:
    return engine.registry


EngineDep = Annotated[AssignmentEngine, Depends(get_assignment_engine)]
RegistryDep = Annotated[RoleRegistry, Depends(get_role_registry)]
