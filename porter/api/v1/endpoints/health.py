"""Health check endpoints: liveness and readiness probes."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from porter.core.config import get_settings
from porter.schemas.health import HealthResponse, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse(version=get_settings().app_version)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Database unreachable", "model": ReadinessResponse}},
)
async def readiness_check(request: Request) -> ReadinessResponse | JSONResponse:
    """Return 200 when the database answers a query; 503 otherwise.

    Cache state is reported but never fails readiness (the cache is best-effort).
    """
    engine = getattr(request.app.state, "assignment_engine", None)
    database_ok = False
    if engine is not None:
        try:
            await engine.ping()
            database_ok = True
        except SQLAlchemyError as e:
            logger.warning("Readiness check failed: %s", e)
    cache = getattr(request.app.state, "cache", None)
    body = ReadinessResponse(
        status="ok" if database_ok else "not_ready",
        database=database_ok,
        cache=bool(cache is not None and cache.is_available()),
    )
    if not database_ok:
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
