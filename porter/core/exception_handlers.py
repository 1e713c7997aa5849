"""Centralized exception handlers for the FastAPI app.

Register with register_exception_handlers(app). Maps domain and framework
exceptions to HTTP responses.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from porter.core.config import get_settings
from porter.domain.exceptions import PorterException

logger = logging.getLogger(__name__)

# Map domain error_code to HTTP status
_ERROR_CODE_STATUS: dict[str, int] = {
    "ROLE_NOT_FOUND": 404,
    "INVALID_ROLE_KEY": 500,
    "TENANT_INTEGRITY_VIOLATION": 422,
    "CONCURRENCY_CONFLICT": 409,
    "ROLE_REGISTRY_ERROR": 500,
    "CONFIGURATION_ERROR": 500,
    "SERVICE_UNAVAILABLE": 503,
}


def _porter_exception_handler(request: Request, exc: PorterException) -> JSONResponse:
    """Return JSON from PorterException.to_dict() with the mapped status code."""
    status = _ERROR_CODE_STATUS.get(exc.error_code, 400)
    if status >= 500:
        logger.error("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 422 with validation error details."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": exc.errors(),
        },
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTP_ERROR", "message": exc.detail},
    )


def _database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Return 503 when the roster database cannot serve the request.

    Mutations reach this only after their retries are used up or for
    errors that are not retried (schema missing, bad credentials).
    """
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "error": "SERVICE_UNAVAILABLE",
            "message": "Role storage is unavailable",
            "details": {"reason": type(exc).__name__},
        },
    )


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return 500; include detail only when debug is True."""
    logger.exception("Unhandled exception: %s", exc)
    detail: Any = str(exc) if get_settings().debug else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": detail},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app.

    Handlers: PorterException (and subclasses), RequestValidationError,
    StarletteHTTPException, SQLAlchemyError, generic Exception.
    """
    app.add_exception_handler(PorterException, _porter_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, _database_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
