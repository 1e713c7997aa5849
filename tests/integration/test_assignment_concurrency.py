"""Concurrent writers on one pair. Require Postgres (advisory + row locks).

Run against a migrated database: set DATABASE_URL=postgresql+asyncpg://...
then run: alembic upgrade head.
"""

import asyncio
import os
import uuid

import pytest
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import create_async_engine

from porter.application.services.assignment_engine import AssignmentEngine
from porter.application.services.cache_coordinator import CacheCoordinator
from porter.application.services.role_registry import DEFAULT_ROLES, RoleRegistry
from porter.application.services.tenant_policy import TenantPolicy
from porter.core.config import Settings
from porter.domain.entities.entity_ref import EntityRef
from porter.infrastructure.persistence.database import make_session_factory
from porter.infrastructure.persistence.models import Roster
from porter.infrastructure.persistence.repositories import RosterRepository


@pytest.fixture
async def pg_session_factory():
    url = os.environ.get("DATABASE_URL", "")
    if not url.startswith("postgresql"):
        pytest.skip(
            "Postgres not configured: set DATABASE_URL=postgresql+asyncpg://..., "
            "then run: alembic upgrade head"
        )
    engine = create_async_engine(url)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def pg_engine(pg_session_factory, fake_cache) -> AssignmentEngine:
    settings = Settings(_env_file=None, retry_backoff_seconds=0.01, retry_attempts=5)
    registry = RoleRegistry(DEFAULT_ROLES)
    policy = TenantPolicy.from_settings(settings)
    return AssignmentEngine(
        session_factory=pg_session_factory,
        registry=registry,
        tenant_policy=policy,
        cache=CacheCoordinator(fake_cache, settings, policy, registry.names),
        settings=settings,
    )


@pytest.fixture
async def pair(pg_session_factory):
    """A fresh (user, project) pair; its rows are deleted after the test."""
    user = EntityRef("user", f"it-{uuid.uuid4().hex[:12]}")
    project = EntityRef("project", f"it-{uuid.uuid4().hex[:12]}")
    yield user, project
    async with pg_session_factory() as session, session.begin():
        await session.execute(delete(Roster).where(Roster.assignable_id == str(user.entity_id)))


@pytest.mark.requires_db
async def test_concurrent_replace_leaves_one_role(pg_engine, pg_session_factory, pair) -> None:
    user, project = pair
    roles = ["viewer", "editor", "manager", "contributor"]

    await asyncio.gather(*(pg_engine.assign(user, project, role) for role in roles))

    async with pg_session_factory() as session:
        rows = await RosterRepository(session).find_for_pair(user, project)
    assert len(rows) == 1
    assert rows[0].role_key in roles


@pytest.mark.requires_db
async def test_concurrent_same_role_inserts_once(pg_engine, pg_session_factory, pair) -> None:
    user, project = pair

    results = await asyncio.gather(*(pg_engine.assign(user, project, "editor") for _ in range(5)))

    assert sum(r.created for r in results) == 1
    async with pg_session_factory() as session:
        rows = await RosterRepository(session).find_for_pair(user, project)
    assert len(rows) == 1
