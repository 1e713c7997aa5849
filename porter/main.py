"""FastAPI application entry point.

Wiring only: lifespan, exception handlers, routers, tracing. No business
logic here. See porter.core.lifespan and porter.core.exception_handlers.

Settings are loaded inside create_app() so that tests can set env (and
clear the get_settings cache) before calling create_app().
"""

from fastapi import FastAPI

from porter.api.v1 import api_router
from porter.core.config import Settings, get_settings
from porter.core.exception_handlers import register_exception_handlers
from porter.core.lifespan import create_lifespan


def _setup_tracing(app: FastAPI, settings: Settings) -> None:
    """Create the tracer provider and instrument the app (before it starts serving)."""
    from porter.shared.telemetry.telemetry import Telemetry, set_telemetry

    telemetry = Telemetry.from_settings(settings)
    telemetry.setup(
        exporter_type=settings.telemetry_exporter,
        otlp_endpoint=settings.telemetry_otlp_endpoint,
        sample_rate=settings.telemetry_sample_rate,
    )
    telemetry.instrument_app(app)
    set_telemetry(telemetry)


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=create_lifespan,
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    if settings.telemetry_enabled:
        _setup_tracing(app, settings)
    return app


app = create_app()
