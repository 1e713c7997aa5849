"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from porter.api.v1.dependencies.
"""

from fastapi import APIRouter

from porter.api.v1.endpoints import health, roles, roster

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(roles.router, prefix="/roles", tags=["roles"])
api_router.include_router(roster.router, prefix="/roster", tags=["roster"])
