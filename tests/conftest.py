"""Pytest configuration and fixtures for porter.

Database fixtures use an in-memory SQLite database (aiosqlite, one shared
connection) with the schema created from Base.metadata. Redis is replaced
by FakeCache, a dict-backed CacheProtocol with tags and glob patterns.
HTTP tests use porter.main:app with the engine placed on app.state
(ASGITransport does not run the lifespan).
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from porter.application.services.assignment_engine import AssignmentEngine
from porter.application.services.cache_coordinator import CacheCoordinator
from porter.application.services.event_dispatcher import EventDispatcher
from porter.application.services.role_registry import DEFAULT_ROLES, RoleRegistry
from porter.application.services.tenant_policy import TenantPolicy
from porter.core.config import Settings, get_settings
from porter.domain.events import RoleEvent
from porter.infrastructure.persistence.database import Base, make_session_factory
from porter.infrastructure.persistence.models import Roster  # noqa: F401  (registers table)


class FakeCache:
    """In-memory CacheProtocol. TTLs are recorded, never enforced."""

    def __init__(self) -> None:
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}
        self.tags: dict[str, set[str]] = {}
        self.available = True

    def is_available(self) -> bool:
        return self.available

    async def get(self, key: str) -> Any:
        return self.store.get(key)

    async def set(self, key: str, value: Any, ttl: int = 300, tags: Iterable[str] = ()) -> bool:
        self.store[key] = value
        self.ttls[key] = ttl
        for tag in tags:
            self.tags.setdefault(tag, set()).add(key)
        return True

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def delete_pattern(self, pattern: str) -> int:
        matched = [k for k in self.store if fnmatch.fnmatchcase(k, pattern)]
        return await self.delete(*matched)

    async def flush_tags(self, *tags: str) -> int:
        members: set[str] = set()
        for tag in tags:
            members.update(self.tags.pop(tag, set()))
        return await self.delete(*members)


class EventRecorder:
    """Collects dispatched role events in order."""

    def __init__(self) -> None:
        self.events: list[RoleEvent] = []

    def __call__(self, event: RoleEvent) -> None:
        self.events.append(event)

    @property
    def names(self) -> list[tuple[str, str]]:
        return [(e.event_name, e.role.name) for e in self.events]


def make_settings(**overrides: Any) -> Settings:
    """Settings for tests: no retry delay, no .env file."""
    values: dict[str, Any] = {"retry_backoff_seconds": 0, "cache_enabled": True}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def registry() -> RoleRegistry:
    return RoleRegistry(DEFAULT_ROLES)


@pytest.fixture
def build_engine(session_factory, fake_cache, recorder):
    """Factory: AssignmentEngine over the test database with settings overrides.

    Every engine shares the same database, cache and event recorder.
    """

    def _build(
        *,
        registry: RoleRegistry | None = None,
        repository_factory: Any = None,
        **overrides: Any,
    ) -> AssignmentEngine:
        settings = make_settings(**overrides)
        registry = registry or RoleRegistry(DEFAULT_ROLES)
        policy = TenantPolicy.from_settings(settings)
        dispatcher = EventDispatcher()
        dispatcher.subscribe_all(recorder)
        return AssignmentEngine(
            session_factory=session_factory,
            registry=registry,
            tenant_policy=policy,
            cache=CacheCoordinator(fake_cache, settings, policy, registry.names),
            settings=settings,
            dispatcher=dispatcher,
            repository_factory=repository_factory,
        )

    return _build


@pytest.fixture
def engine(build_engine) -> AssignmentEngine:
    """Engine with default settings (replace strategy, plain keys, no multitenancy)."""
    return build_engine()


@pytest.fixture
async def client(engine) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI) backed by the test engine."""
    from porter.main import app

    app.state.assignment_engine = engine
    app.state.cache = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.assignment_engine
