"""Application lifespan: startup and shutdown.

Single place for all startup/shutdown logic (SRP). Used by main.py;
no business logic here, only wiring: role registry, tenant policy,
Redis cache, event dispatcher, assignment engine, telemetry, DB engine
dispose.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from porter.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def build_assignment_engine(app: FastAPI, settings: Settings) -> None:
    """Wire the assignment engine and its collaborators onto app.state."""
    from porter.application.services.assignment_engine import AssignmentEngine
    from porter.application.services.cache_coordinator import CacheCoordinator
    from porter.application.services.event_dispatcher import EventDispatcher
    from porter.application.services.role_registry import build_role_registry
    from porter.application.services.tenant_policy import TenantPolicy
    from porter.infrastructure.persistence.database import get_session_factory

    registry = build_role_registry(settings)
    tenant_policy = TenantPolicy.from_settings(settings)

    cache = None
    if settings.cache_enabled:
        from porter.infrastructure.cache.redis_cache import CacheService

        cache = CacheService(settings=settings)
        await cache.connect()
    app.state.cache = cache

    dispatcher = EventDispatcher()
    app.state.event_publisher = None
    if settings.events_broadcast:
        from porter.infrastructure.messaging.redis_pubsub import RoleEventPublisher

        shared = cache.redis if cache is not None and cache.is_available() else None
        publisher = RoleEventPublisher(redis_client=shared, settings=settings)
        await publisher.connect()
        dispatcher.subscribe_all(publisher.publish)
        app.state.event_publisher = publisher

    app.state.role_registry = registry
    app.state.event_dispatcher = dispatcher
    app.state.assignment_engine = AssignmentEngine(
        session_factory=get_session_factory(),
        registry=registry,
        tenant_policy=tenant_policy,
        cache=CacheCoordinator(cache, settings, tenant_policy, registry.names),
        settings=settings,
        dispatcher=dispatcher,
    )
    logger.info(
        "Assignment engine ready: %d roles, strategy=%s, key_storage=%s, multitenancy=%s",
        len(registry),
        settings.assignment_strategy.value,
        settings.key_storage.value,
        settings.multitenancy_enabled,
    )


def instrument_backends() -> None:
    """Attach tracing to the SQL engine, Redis and logging (telemetry set up in create_app)."""
    from porter.infrastructure.persistence import database
    from porter.shared.telemetry.telemetry import get_telemetry

    telemetry = get_telemetry()
    if telemetry is None:
        return
    database._ensure_engine()
    telemetry.instrument_backends(database.engine)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup: logging, engine wiring (registry, cache, publisher), telemetry.
    Shutdown: publisher and cache disconnect, telemetry flush, SQL engine dispose.
    """
    settings = get_settings()

    # ---- Startup ----
    from porter.shared.telemetry.logging import setup_logging

    setup_logging()
    await build_assignment_engine(app, settings)

    if settings.telemetry_enabled:
        instrument_backends()

    yield

    # ---- Shutdown ----
    publisher = getattr(app.state, "event_publisher", None)
    if publisher is not None:
        await publisher.disconnect()

    if getattr(app.state, "cache", None) is not None:
        await app.state.cache.disconnect()
        logger.info("Cache disconnected")

    from porter.shared.telemetry.telemetry import get_telemetry, set_telemetry

    telemetry = get_telemetry()
    if telemetry is not None:
        telemetry.shutdown()
        set_telemetry(None)
        logger.info("Telemetry shutdown complete")

    from porter.infrastructure.persistence.database import dispose_engine

    await dispose_engine()
