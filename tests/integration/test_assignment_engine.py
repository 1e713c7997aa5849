"""AssignmentEngine tests: strategies, events, reads and cache invalidation (SQLite)."""

import pytest
from sqlalchemy import select

from porter.application.services.role_keys import HashedKeyCodec
from porter.application.services.role_registry import DEFAULT_ROLES, RoleRegistry
from porter.domain.entities.entity_ref import EntityRef
from porter.domain.exceptions import RoleNotFoundException
from porter.infrastructure.persistence.models import Roster
from porter.infrastructure.persistence.repositories import RosterRepository

ALICE = EntityRef("user", 1)
BOB = EntityRef("user", 2)
PROJECT = EntityRef("project", 7)


class TestAssignReplace:
    async def test_assign_then_replace(self, engine, recorder) -> None:
        await engine.assign(ALICE, PROJECT, "editor")
        result = await engine.assign(ALICE, PROJECT, "manager")

        assert result.created
        assert [r.name for r in result.removed] == ["editor"]
        assert await engine.get_roles_on(ALICE, PROJECT) == ["manager"]
        assert recorder.names == [
            ("RoleAssigned", "editor"),
            ("RoleRemoved", "editor"),
            ("RoleAssigned", "manager"),
        ]

    async def test_same_role_twice_is_noop(self, engine, recorder, session_factory) -> None:
        await engine.assign(ALICE, PROJECT, "editor")
        result = await engine.assign(ALICE, PROJECT, "editor")

        assert not result.changed
        assert len(recorder.events) == 1
        async with session_factory() as session:
            rows = await RosterRepository(session).find_for_pair(ALICE, PROJECT)
        assert len(rows) == 1

    async def test_unknown_role_raises_before_write(self, engine, recorder) -> None:
        with pytest.raises(RoleNotFoundException):
            await engine.assign(ALICE, PROJECT, "ghost")
        assert recorder.events == []
        assert not await engine.has_any_role_on(ALICE, PROJECT)


class TestAssignAdd:
    async def test_roles_accumulate(self, build_engine) -> None:
        engine = build_engine(assignment_strategy="add")
        await engine.assign(ALICE, PROJECT, "editor")
        result = await engine.assign(ALICE, PROJECT, "viewer")

        assert result.removed == []
        assert sorted(await engine.get_roles_on(ALICE, PROJECT)) == ["editor", "viewer"]
        assert await engine.has_role_on(ALICE, PROJECT, "editor")
        assert await engine.has_role_on(ALICE, PROJECT, "viewer")


class TestRemove:
    async def test_remove_is_idempotent(self, engine, recorder) -> None:
        await engine.assign(ALICE, PROJECT, "viewer")
        first = await engine.remove(ALICE, PROJECT)
        second = await engine.remove(ALICE, PROJECT)

        assert first.removed_count == 1
        assert [r.name for r in first.removed] == ["viewer"]
        assert second.removed_count == 0
        assert recorder.names == [("RoleAssigned", "viewer"), ("RoleRemoved", "viewer")]

    async def test_retired_role_removed_without_event(self, engine, recorder, session_factory) -> None:
        async with session_factory() as session, session.begin():
            await RosterRepository(session).insert_if_absent(ALICE, PROJECT, "retired")

        result = await engine.remove(ALICE, PROJECT)

        assert result.removed_count == 1
        assert result.removed == []
        assert recorder.events == []


class TestChangeRole:
    async def test_change_emits_removed_then_assigned(self, engine, recorder) -> None:
        await engine.assign(ALICE, PROJECT, "manager")
        recorder.events.clear()

        result = await engine.change_role_on(ALICE, PROJECT, "editor")

        assert result.changed
        assert recorder.names == [("RoleRemoved", "manager"), ("RoleAssigned", "editor")]
        assert await engine.get_role_on(ALICE, PROJECT) == "editor"

    async def test_change_without_binding_assigns(self, engine, recorder) -> None:
        result = await engine.change_role_on(ALICE, PROJECT, "viewer")
        assert result.created
        assert recorder.names == [("RoleAssigned", "viewer")]

    async def test_change_to_held_role_is_noop(self, engine, recorder) -> None:
        await engine.assign(ALICE, PROJECT, "viewer")
        result = await engine.change_role_on(ALICE, PROJECT, "viewer")
        assert not result.changed
        assert len(recorder.events) == 1

    async def test_manager_demoted_to_editor(self, engine) -> None:
        await engine.assign(ALICE, PROJECT, "manager")
        assert await engine.is_at_least_on(ALICE, PROJECT, "editor")

        await engine.change_role_on(ALICE, PROJECT, "editor")

        assert await engine.is_at_least_on(ALICE, PROJECT, "editor")
        assert not await engine.is_at_least_on(ALICE, PROJECT, "manager")
        assert (await engine.get_role_identity_on(ALICE, PROJECT)).level == 4


class TestReads:
    async def test_unknown_role_checks_are_false(self, engine) -> None:
        await engine.assign(ALICE, PROJECT, "editor")
        assert not await engine.has_role_on(ALICE, PROJECT, "ghost")
        assert not await engine.is_at_least_on(ALICE, PROJECT, "ghost")

    async def test_participants(self, engine) -> None:
        await engine.assign(ALICE, PROJECT, "editor")
        await engine.assign(BOB, PROJECT, "viewer")

        holders = await engine.get_participants_has_role(PROJECT, "editor")
        assert [h.morph_key for h in holders] == [("user", "1")]

        participants = await engine.get_participants_with_roles(PROJECT)
        assert {p.role.name for p in participants} == {"editor", "viewer"}
        assert participants.except_assignable(ALICE).participant_ids() == ["2"]

        with pytest.raises(RoleNotFoundException):
            await engine.get_participants_has_role(PROJECT, "ghost")

    async def test_assigned_entities(self, engine) -> None:
        await engine.assign(ALICE, PROJECT, "editor")
        await engine.assign(ALICE, EntityRef("project", 8), "viewer")
        await engine.assign(ALICE, EntityRef("team", 3), "viewer")

        projects = await engine.get_assigned_entities_by_type(ALICE, "project")
        assert [p.entity_id for p in projects] == ["7", "8"]
        limited = await engine.get_assigned_entities_by_keys_by_type(ALICE, [8, 99], "project")
        assert [p.entity_id for p in limited] == ["8"]

    async def test_ensure_role_exists(self, engine) -> None:
        assert engine.ensure_role_exists("admin").level == 6
        with pytest.raises(RoleNotFoundException):
            engine.ensure_role_exists("ghost")


class TestCaching:
    async def test_mutation_invalidates_cached_checks(self, engine, fake_cache) -> None:
        assert not await engine.has_role_on(ALICE, PROJECT, "editor")
        assert await engine.get_roles_on(ALICE, PROJECT) == []
        assert fake_cache.store

        await engine.assign(ALICE, PROJECT, "editor")

        assert await engine.has_role_on(ALICE, PROJECT, "editor")
        assert await engine.get_roles_on(ALICE, PROJECT) == ["editor"]

    async def test_participants_cache_refreshed_after_remove(self, engine) -> None:
        await engine.assign(ALICE, PROJECT, "editor")
        assert len(await engine.get_participants_with_roles(PROJECT)) == 1
        assert len(await engine.get_participants_has_role(PROJECT, "editor")) == 1

        await engine.remove(ALICE, PROJECT)

        assert len(await engine.get_participants_with_roles(PROJECT)) == 0
        assert await engine.get_participants_has_role(PROJECT, "editor") == []

    async def test_clear_cache_for_roleable(self, engine, fake_cache) -> None:
        await engine.assign(ALICE, PROJECT, "editor")
        await engine.has_role_on(ALICE, PROJECT, "editor")
        await engine.get_assigned_entities_by_type(ALICE, "project")

        await engine.clear_cache(PROJECT)

        assert fake_cache.store == {}

    async def test_cache_disabled_reads_database(self, build_engine, fake_cache) -> None:
        engine = build_engine(cache_enabled=False)
        await engine.assign(ALICE, PROJECT, "editor")
        assert await engine.has_role_on(ALICE, PROJECT, "editor")
        assert fake_cache.store == {}


async def test_hashed_keys_stored_opaque(build_engine, session_factory) -> None:
    registry = RoleRegistry(DEFAULT_ROLES, HashedKeyCodec("engine-test-secret"))
    engine = build_engine(registry=registry)
    await engine.assign(ALICE, PROJECT, "editor")

    async with session_factory() as session:
        stored = (await session.execute(select(Roster.role_key))).scalars().all()
    assert stored == [registry.key_for("editor")]
    assert stored[0] != "editor"
    assert await engine.get_role_on(ALICE, PROJECT) == "editor"
