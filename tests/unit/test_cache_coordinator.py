"""Tests for CacheCoordinator: read-through, tenant segments and invalidation sets."""

import pytest

from porter.application.services.cache_coordinator import CacheCoordinator
from porter.application.services.tenant_policy import TenantPolicy
from porter.core.config import Settings
from porter.domain.entities.entity_ref import EntityRef
from porter.domain.enums import CachePurpose

ROLE_NAMES = ["manager", "editor"]

USER = EntityRef("user", 1, tenant_key="acme")
PROJECT = EntityRef("project", 7, tenant_key="acme")


def _coordinator(cache, **overrides) -> CacheCoordinator:
    settings = Settings(_env_file=None, **overrides)
    policy = TenantPolicy.from_settings(settings)
    return CacheCoordinator(cache, settings, policy, lambda: ROLE_NAMES)


class TestRemember:
    async def test_computes_once(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache)
        calls = []

        async def compute():
            calls.append(1)
            return ["editor"]

        key = coordinator.role_check_key(USER, PROJECT, current=True)
        assert await coordinator.remember(key, 60, compute) == ["editor"]
        assert await coordinator.remember(key, 60, compute) == ["editor"]
        assert len(calls) == 1
        assert fake_cache.ttls[key] == 60

    async def test_none_not_cached(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache)

        async def compute():
            return None

        assert await coordinator.remember("k", 60, compute) is None
        assert "k" not in fake_cache.store

    async def test_disabled_bypasses_cache(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache, cache_enabled=False)

        async def compute():
            return True

        assert await coordinator.remember("k", 60, compute) is True
        assert fake_cache.store == {}

    async def test_unavailable_cache_bypassed(self, fake_cache) -> None:
        fake_cache.available = False
        assert not _coordinator(fake_cache).enabled

    async def test_without_backend_every_call_is_a_noop(self) -> None:
        coordinator = _coordinator(None)

        async def compute():
            return ["editor"]

        assert not coordinator.enabled
        assert await coordinator.remember("k", 60, compute) == ["editor"]
        assert await coordinator.invalidate("k") == 0
        await coordinator.invalidate_pair(USER, PROJECT)
        await coordinator.bulk_invalidate([PROJECT])


class TestKeys:
    def test_tenant_segment_only_with_multitenancy(self, fake_cache) -> None:
        plain = _coordinator(fake_cache)
        scoped = _coordinator(fake_cache, multitenancy_enabled=True)
        assert not plain.participants_key(PROJECT).endswith(":t:acme")
        assert scoped.participants_key(PROJECT).endswith(":t:acme")
        assert scoped.role_check_key(USER, PROJECT).endswith(":any:t:acme")

    def test_ttl_per_purpose(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache, cache_ttl=100, cache_ttl_role_check=10)
        assert coordinator.ttl(CachePurpose.ROLE_CHECK) == 10
        assert coordinator.ttl(CachePurpose.PARTICIPANTS) == 100


class TestInvalidation:
    async def test_invalidate_pair_clears_pair_entries(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache)
        pair_keys = [
            coordinator.participants_key(PROJECT),
            coordinator.participants_with_role_key(PROJECT, "editor"),
            coordinator.role_check_key(USER, PROJECT),
            coordinator.role_check_key(USER, PROJECT, "manager"),
            coordinator.role_check_key(USER, PROJECT, current=True),
            coordinator.assigned_entities_key(USER, "project"),
        ]
        other = coordinator.participants_key(EntityRef("project", 8))
        for key in pair_keys + [other]:
            await fake_cache.set(key, True)

        await coordinator.invalidate_pair(USER, PROJECT)

        assert set(fake_cache.store) == {other}

    async def test_invalidate_roleable_by_pattern(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache)
        alice, bob = EntityRef("user", 1), EntityRef("user", 2)
        await fake_cache.set(coordinator.role_check_key(alice, PROJECT, "editor"), True)
        await fake_cache.set(coordinator.role_check_key(bob, PROJECT), True)
        await fake_cache.set(coordinator.assigned_entities_key(bob, "project"), [7])
        await fake_cache.set(coordinator.participants_key(PROJECT), [])
        await fake_cache.set(coordinator.assigned_entities_key(bob, "team"), [3])

        await coordinator.invalidate_roleable(PROJECT)

        assert list(fake_cache.store) == [coordinator.assigned_entities_key(bob, "team")]

    async def test_invalidate_roleable_by_tags(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache, cache_use_tags=True)
        key = coordinator.role_check_key(USER, PROJECT)
        await fake_cache.set(key, True, tags=coordinator.tags_for(USER, PROJECT))
        await fake_cache.set("unrelated", True)

        await coordinator.invalidate_roleable(PROJECT)

        assert list(fake_cache.store) == ["unrelated"]

    async def test_bulk_invalidates_every_target(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache)
        urn_project = EntityRef("project", "urn:p:1")
        await fake_cache.set(coordinator.participants_key(PROJECT), [])
        await fake_cache.set(coordinator.participants_key(urn_project), [])
        await fake_cache.set(coordinator.role_check_key(USER, urn_project), True)

        await coordinator.bulk_invalidate([urn_project, PROJECT])

        assert fake_cache.store == {}

    async def test_invalidate_pair_clears_other_tenant_segments(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache, multitenancy_enabled=True)
        stale = [
            coordinator.role_check_key(USER, PROJECT, "editor"),
            coordinator.role_check_key(USER, PROJECT, current=True),
            coordinator.assigned_entities_key(USER, "project"),
        ]
        unrelated = coordinator.role_check_key(USER, EntityRef("project", 8, tenant_key="acme"))
        for key in stale + [unrelated]:
            await fake_cache.set(key, True)

        user_elsewhere = EntityRef("user", 1, tenant_key="globex")
        await coordinator.invalidate_pair(user_elsewhere, PROJECT)

        assert set(fake_cache.store) == {unrelated}

    async def test_invalidate_pair_with_tags_flushes_both_entities(self, fake_cache) -> None:
        coordinator = _coordinator(fake_cache, cache_use_tags=True, multitenancy_enabled=True)
        assigned = coordinator.assigned_entities_key(USER, "project")
        await fake_cache.set(assigned, [7], tags=coordinator.tags_for(USER))
        await fake_cache.set("unrelated", True)

        await coordinator.invalidate_pair(EntityRef("user", 1, tenant_key="globex"), PROJECT)

        assert list(fake_cache.store) == ["unrelated"]

    async def test_invalidate_without_keys(self, fake_cache) -> None:
        assert await _coordinator(fake_cache).invalidate() == 0


@pytest.mark.parametrize("current", [True, False])
def test_role_check_variants_are_distinct(fake_cache, current) -> None:
    coordinator = _coordinator(fake_cache)
    assert coordinator.role_check_key(USER, PROJECT, current=current) != coordinator.role_check_key(
        USER, PROJECT, "editor"
    )


def test_ids_with_separator_get_distinct_keys(fake_cache) -> None:
    coordinator = _coordinator(fake_cache, multitenancy_enabled=True)
    first = EntityRef("user", "urn:user:1", tenant_key="acme")
    second = EntityRef("user", "urn:user:2", tenant_key="acme")
    assert coordinator.role_check_key(first, PROJECT) != coordinator.role_check_key(
        second, PROJECT
    )
    assert coordinator.role_check_key(first, PROJECT).endswith(":any:t:acme")
