"""Assignment engine: assign, remove and change roles; answer role queries.

Every mutation runs in one transaction: resolve role and validate tenants
first, then lock the (assignable, roleable) pair and write. Events are
collected inside the transaction. After commit the pair's cache
entries are invalidated, then the events are dispatched. Infrastructure
errors retry the whole transaction with exponential backoff; domain
errors never retry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from porter.application.dtos.assignment import (
    AssignmentResult,
    Participant,
    ParticipantsCollection,
    RemovalResult,
)
from porter.application.interfaces.entities import AssignableEntity, RoleableEntity
from porter.application.interfaces.repositories import IRosterRepository
from porter.application.services.cache_coordinator import CacheCoordinator
from porter.application.services.event_dispatcher import EventDispatcher
from porter.application.services.role_registry import RoleRegistry
from porter.application.services.tenant_policy import (
    TenantPolicy,
    is_tenant_entity,
    resolve_assignable_tenant,
    resolve_roleable_tenant,
)
from porter.core.config import Settings
from porter.domain.entities.entity_ref import EntityRef
from porter.domain.enums import AssignmentStrategy, CachePurpose
from porter.domain.events import RoleAssigned, RoleEvent, RoleRemoved
from porter.domain.exceptions import ConcurrencyConflictException
from porter.domain.value_objects.role import RoleIdentity
from porter.shared.telemetry.tracing import add_span_attributes, traced_mutation

logger = logging.getLogger(__name__)

T = TypeVar("T")

RoleLike = str | RoleIdentity


def _assignable_ref(entity: Any) -> EntityRef:
    """EntityRef carrying the assignable's current tenant."""
    if isinstance(entity, EntityRef):
        return entity
    return EntityRef(
        entity_type=entity.entity_type,
        entity_id=entity.entity_id,
        tenant_key=resolve_assignable_tenant(entity),
    )


def _roleable_ref(entity: Any) -> EntityRef:
    """EntityRef carrying the roleable's tenant (or its tenant-entity flag)."""
    if isinstance(entity, EntityRef):
        return entity
    tenant_entity = is_tenant_entity(entity)
    return EntityRef(
        entity_type=entity.entity_type,
        entity_id=entity.entity_id,
        tenant_key=None if tenant_entity else resolve_roleable_tenant(entity),
        is_tenant_entity=tenant_entity,
    )


UNIQUE_VIOLATION_SQLSTATE = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    """True for a duplicate-key race; NOT NULL, check and foreign key violations are not."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == UNIQUE_VIOLATION_SQLSTATE
    return "UNIQUE constraint failed" in str(orig)


def _is_retryable(exc: DBAPIError) -> bool:
    """Lock timeouts, deadlocks, lost connections and unique races are transient."""
    if isinstance(exc, IntegrityError):
        return _is_unique_violation(exc)
    return isinstance(exc, OperationalError) or exc.connection_invalidated


class AssignmentEngine:
    """Role assignment orchestration over the roster.

    Constructed explicitly with its collaborators (see
    porter.core.lifespan). Entities are any objects exposing
    entity_type / entity_id plus the optional tenant accessors.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: RoleRegistry,
        tenant_policy: TenantPolicy,
        cache: CacheCoordinator,
        settings: Settings,
        dispatcher: EventDispatcher | None = None,
        repository_factory: Callable[[AsyncSession], IRosterRepository] | None = None,
    ) -> None:
        if repository_factory is None:
            from porter.infrastructure.persistence.repositories.roster_repo import (
                RosterRepository,
            )

            repository_factory = RosterRepository
        self._session_factory = session_factory
        self.registry = registry
        self.tenant_policy = tenant_policy
        self.cache = cache
        self.settings = settings
        self.dispatcher = dispatcher or EventDispatcher()
        self._repository_factory = repository_factory

    @property
    def strategy(self) -> AssignmentStrategy:
        return self.settings.assignment_strategy

    # -- transaction plumbing ---------------------------------------------

    async def _in_transaction(
        self, operation: str, work: Callable[[IRosterRepository], Awaitable[T]]
    ) -> T:
        """Run work in a fresh transaction, retrying transient database errors.

        Raises:
            ConcurrencyConflictException: still failing after retry_attempts.
        """
        max_attempts = self.settings.retry_attempts
        attempt = 0
        while True:
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await work(self._repository_factory(session))
            except DBAPIError as e:
                if not _is_retryable(e):
                    raise
                if attempt == max_attempts - 1:
                    logger.error(
                        "%s failed after %d attempt(s): %s", operation, max_attempts, e.orig or e
                    )
                    raise ConcurrencyConflictException(
                        operation, max_attempts, str(e.orig or e)
                    ) from e
                delay = self.settings.retry_backoff_seconds * (2**attempt)
                logger.warning(
                    "%s attempt %d/%d failed (%s); retrying in %.3fs",
                    operation,
                    attempt + 1,
                    max_attempts,
                    type(e).__name__,
                    delay,
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def _read(self, query: Callable[[IRosterRepository], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            return await query(self._repository_factory(session))

    async def ping(self) -> None:
        """Run a trivial query; raises SQLAlchemyError when the database is unreachable."""
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def _after_commit(
        self, assignable: EntityRef, roleable: EntityRef, events: list[RoleEvent]
    ) -> None:
        """Invalidate the pair's cache entries, then dispatch events in order."""
        await self.cache.invalidate_pair(assignable, roleable)
        await self.dispatcher.dispatch_all(events)

    def _removed_events(
        self, assignable: EntityRef, roleable: EntityRef, rows: Iterable[Any]
    ) -> tuple[list[RoleIdentity], list[RoleEvent]]:
        """RoleRemoved per row whose role still resolves; retired keys are logged and skipped."""
        roles: list[RoleIdentity] = []
        events: list[RoleEvent] = []
        for row in rows:
            role = self.registry.resolve_row(row)
            if role is None:
                logger.warning(
                    "Removed binding %s:%s -> %s:%s holds an unknown role key; no event emitted",
                    assignable.entity_type,
                    assignable.entity_id,
                    roleable.entity_type,
                    roleable.entity_id,
                )
                continue
            roles.append(role)
            events.append(RoleRemoved(assignable=assignable, roleable=roleable, role=role))
        return roles, events

    async def _assign_locked(
        self,
        repo: IRosterRepository,
        assignable: EntityRef,
        roleable: EntityRef,
        role: RoleIdentity,
        role_key: str,
        tenant_id: str | None,
    ) -> AssignmentResult:
        """Assign under an already held pair lock."""
        removed_rows: list[Any] = []
        if self.strategy == AssignmentStrategy.REPLACE:
            removed_rows = await repo.delete_for_pair_except(assignable, roleable, role_key)
        _, created = await repo.insert_if_absent(assignable, roleable, role_key, tenant_id)
        removed, events = self._removed_events(assignable, roleable, removed_rows)
        if created:
            events.append(RoleAssigned(assignable=assignable, roleable=roleable, role=role))
        return AssignmentResult(
            assignable=assignable,
            roleable=roleable,
            role=role,
            created=created,
            removed=removed,
            events=events,
        )

    # -- mutations -------------------------------------------------------

    @traced_mutation("assign")
    async def assign(
        self, assignable: AssignableEntity, roleable: RoleableEntity, role: RoleLike
    ) -> AssignmentResult:
        """Give assignable the role on roleable.

        Under 'replace' every other role of the pair is removed in the same
        transaction; under 'add' the role is added next to existing ones.
        Assigning a role the pair already holds is a no-op.

        Raises:
            RoleNotFoundException: role does not resolve.
            TenantIntegrityException: the pair crosses tenant boundaries.
            ConcurrencyConflictException: retries exhausted.
        """
        resolved = self.registry.resolve(role)
        tenant_id = self.tenant_policy.validate(assignable, roleable)
        role_key = self.registry.key_for(resolved)
        a_ref, r_ref = _assignable_ref(assignable), _roleable_ref(roleable)

        async def work(repo: IRosterRepository) -> AssignmentResult:
            await repo.lock_pair(a_ref, r_ref)
            return await self._assign_locked(repo, a_ref, r_ref, resolved, role_key, tenant_id)

        result = await self._in_transaction("assign", work)
        add_span_attributes(
            **{"porter.role": resolved.name, "porter.created": result.created}
        )
        logger.info(
            "Assigned role %s: %s:%s -> %s:%s (created=%s, replaced=%d)",
            resolved.name,
            a_ref.entity_type,
            a_ref.entity_id,
            r_ref.entity_type,
            r_ref.entity_id,
            result.created,
            len(result.removed),
        )
        await self._after_commit(a_ref, r_ref, result.events)
        return result

    @traced_mutation("remove")
    async def remove(
        self, assignable: AssignableEntity, roleable: RoleableEntity
    ) -> RemovalResult:
        """Remove every role assignable holds on roleable. Idempotent."""
        a_ref, r_ref = _assignable_ref(assignable), _roleable_ref(roleable)

        async def work(repo: IRosterRepository) -> RemovalResult:
            await repo.lock_pair(a_ref, r_ref)
            rows = await repo.delete_for_pair(a_ref, r_ref)
            removed, events = self._removed_events(a_ref, r_ref, rows)
            return RemovalResult(
                assignable=a_ref,
                roleable=r_ref,
                removed=removed,
                removed_count=len(rows),
                events=events,
            )

        result = await self._in_transaction("remove", work)
        add_span_attributes(**{"porter.removed_count": result.removed_count})
        if result.removed_count:
            logger.info(
                "Removed %d binding(s): %s:%s -> %s:%s",
                result.removed_count,
                a_ref.entity_type,
                a_ref.entity_id,
                r_ref.entity_type,
                r_ref.entity_id,
            )
        await self._after_commit(a_ref, r_ref, result.events)
        return result

    @traced_mutation("change_role_on")
    async def change_role_on(
        self, assignable: AssignableEntity, roleable: RoleableEntity, new_role: RoleLike
    ) -> AssignmentResult:
        """Switch the pair's role to new_role.

        Without an existing binding this behaves as assign(). Otherwise the
        oldest binding's role_key is overwritten and RoleRemoved(old) then
        RoleAssigned(new) are emitted. No-op when the pair already holds new_role.

        Raises:
            RoleNotFoundException: new_role does not resolve.
            TenantIntegrityException: the pair crosses tenant boundaries.
            ConcurrencyConflictException: retries exhausted.
        """
        resolved = self.registry.resolve(new_role)
        tenant_id = self.tenant_policy.validate(assignable, roleable)
        role_key = self.registry.key_for(resolved)
        a_ref, r_ref = _assignable_ref(assignable), _roleable_ref(roleable)

        async def work(repo: IRosterRepository) -> AssignmentResult:
            existing = await repo.lock_pair(a_ref, r_ref)
            if not existing:
                return await self._assign_locked(
                    repo, a_ref, r_ref, resolved, role_key, tenant_id
                )
            if any(row.role_key == role_key for row in existing):
                return AssignmentResult(
                    assignable=a_ref, roleable=r_ref, role=resolved, created=False
                )
            row = existing[0]
            old_rows = [row]
            removed, events = self._removed_events(a_ref, r_ref, old_rows)
            await repo.update_role_key(row, role_key)
            events.append(RoleAssigned(assignable=a_ref, roleable=r_ref, role=resolved))
            return AssignmentResult(
                assignable=a_ref,
                roleable=r_ref,
                role=resolved,
                created=True,
                removed=removed,
                events=events,
            )

        result = await self._in_transaction("change_role_on", work)
        add_span_attributes(
            **{"porter.role": resolved.name, "porter.changed": result.changed}
        )
        logger.info(
            "Changed role on %s:%s -> %s:%s to %s (changed=%s)",
            a_ref.entity_type,
            a_ref.entity_id,
            r_ref.entity_type,
            r_ref.entity_id,
            resolved.name,
            result.changed,
        )
        await self._after_commit(a_ref, r_ref, result.events)
        return result

    # -- reads -----------------------------------------------------------

    def _assignable_scope(self, assignable: AssignableEntity) -> str | None:
        return self.tenant_policy.read_scope(resolve_assignable_tenant(assignable))

    def _roleable_scope(self, roleable: RoleableEntity) -> str | None:
        return self.tenant_policy.read_scope(resolve_roleable_tenant(roleable))

    async def has_role_on(
        self, assignable: AssignableEntity, roleable: RoleableEntity, role: RoleLike
    ) -> bool:
        """True if assignable holds role on roleable. Unknown roles yield False."""
        resolved = self.registry.try_resolve(role)
        if resolved is None:
            return False
        role_key = self.registry.key_for(resolved)
        tenant = self._assignable_scope(assignable)
        return await self.cache.remember(
            self.cache.role_check_key(assignable, roleable, resolved.name),
            self.cache.ttl(CachePurpose.ROLE_CHECK),
            lambda: self._read(lambda repo: repo.exists(assignable, roleable, role_key, tenant)),
            tags=self.cache.tags_for(assignable, roleable),
        )

    async def has_any_role_on(
        self, assignable: AssignableEntity, roleable: RoleableEntity
    ) -> bool:
        tenant = self._assignable_scope(assignable)
        return await self.cache.remember(
            self.cache.role_check_key(assignable, roleable),
            self.cache.ttl(CachePurpose.ROLE_CHECK),
            lambda: self._read(lambda repo: repo.exists(assignable, roleable, None, tenant)),
            tags=self.cache.tags_for(assignable, roleable),
        )

    async def get_roles_on(
        self, assignable: AssignableEntity, roleable: RoleableEntity
    ) -> list[str]:
        """Names of every role assignable holds on roleable, oldest binding first.

        Bindings with retired role keys are left out.
        """
        tenant = self._assignable_scope(assignable)

        async def compute() -> list[str]:
            rows = await self._read(lambda repo: repo.find_for_pair(assignable, roleable, tenant))
            names = []
            for row in rows:
                role = self.registry.resolve_row(row)
                if role is not None:
                    names.append(role.name)
            return names

        return await self.cache.remember(
            self.cache.role_check_key(assignable, roleable, current=True),
            self.cache.ttl(CachePurpose.ROLE_CHECK),
            compute,
            tags=self.cache.tags_for(assignable, roleable),
        )

    async def get_role_on(
        self, assignable: AssignableEntity, roleable: RoleableEntity
    ) -> str | None:
        """Plain name of the role assignable holds on roleable, or None."""
        names = await self.get_roles_on(assignable, roleable)
        return names[0] if names else None

    async def get_role_identity_on(
        self, assignable: AssignableEntity, roleable: RoleableEntity
    ) -> RoleIdentity | None:
        name = await self.get_role_on(assignable, roleable)
        return self.registry.try_resolve(name) if name is not None else None

    async def is_at_least_on(
        self, assignable: AssignableEntity, roleable: RoleableEntity, role: RoleLike
    ) -> bool:
        """True if any role held on roleable is at or above role. Unknown roles yield False."""
        target = self.registry.try_resolve(role)
        if target is None:
            return False
        for name in await self.get_roles_on(assignable, roleable):
            held = self.registry.try_resolve(name)
            if held is not None and held.is_at_least(target):
                return True
        return False

    async def get_participants_has_role(
        self, roleable: RoleableEntity, role: RoleLike
    ) -> list[EntityRef]:
        """Assignables holding role on roleable.

        Raises:
            RoleNotFoundException: role does not resolve.
        """
        resolved = self.registry.resolve(role)
        role_key = self.registry.key_for(resolved)
        tenant = self._roleable_scope(roleable)

        async def compute() -> list[dict[str, Any]]:
            pairs = await self._read(
                lambda repo: repo.list_assignables_with_role(roleable, role_key, tenant)
            )
            return [{"type": a_type, "id": a_id} for a_type, a_id in pairs]

        data = await self.cache.remember(
            self.cache.participants_with_role_key(roleable, resolved.name),
            self.cache.ttl(CachePurpose.PARTICIPANTS),
            compute,
            tags=self.cache.tags_for(roleable),
        )
        return [EntityRef.from_dict(item) for item in data]

    async def get_participants_with_roles(
        self, roleable: RoleableEntity
    ) -> ParticipantsCollection:
        """Every binding on roleable with its resolved role (None for retired keys)."""
        tenant = self._roleable_scope(roleable)

        async def compute() -> list[dict[str, Any]]:
            rows = await self._read(lambda repo: repo.list_for_roleable(roleable, None, tenant))
            return [
                {"type": row.assignable_type, "id": row.assignable_id, "role_key": row.role_key}
                for row in rows
            ]

        data = await self.cache.remember(
            self.cache.participants_key(roleable),
            self.cache.ttl(CachePurpose.PARTICIPANTS),
            compute,
            tags=self.cache.tags_for(roleable),
        )
        return ParticipantsCollection(
            Participant(
                assignable=EntityRef.from_dict(item),
                role_key=item["role_key"],
                role=self.registry.by_key(item["role_key"]),
            )
            for item in data
        )

    async def get_assigned_entities_by_type(
        self, assignable: AssignableEntity, roleable_type: str
    ) -> list[EntityRef]:
        """Roleables of roleable_type on which assignable holds any role."""
        tenant = self._assignable_scope(assignable)

        async def compute() -> list[str | int]:
            return await self._read(
                lambda repo: repo.list_roleables_for_assignable(
                    assignable, roleable_type, None, tenant
                )
            )

        ids = await self.cache.remember(
            self.cache.assigned_entities_key(assignable, roleable_type),
            self.cache.ttl(CachePurpose.ASSIGNED_ENTITIES),
            compute,
            tags=self.cache.tags_for(assignable) + self.cache.type_tag(roleable_type),
        )
        return [EntityRef(entity_type=roleable_type, entity_id=i) for i in ids]

    async def get_assigned_entities_by_keys_by_type(
        self, assignable: AssignableEntity, keys: list[str | int], roleable_type: str
    ) -> list[EntityRef]:
        """Like get_assigned_entities_by_type restricted to the given roleable ids (uncached)."""
        tenant = self._assignable_scope(assignable)
        ids = await self._read(
            lambda repo: repo.list_roleables_for_assignable(
                assignable, roleable_type, list(keys), tenant
            )
        )
        return [EntityRef(entity_type=roleable_type, entity_id=i) for i in ids]

    def ensure_role_exists(self, identifier: RoleLike) -> RoleIdentity:
        """Return the resolved role; raise RoleNotFoundException if unknown."""
        return self.registry.resolve(identifier)

    # -- cache maintenance -----------------------------------------------

    async def clear_cache(
        self, roleable: RoleableEntity, assignable: AssignableEntity | None = None
    ) -> None:
        """Drop cached reads for roleable (every assignable), or for one pair."""
        if assignable is not None:
            await self.cache.invalidate_pair(assignable, roleable)
        else:
            await self.cache.invalidate_roleable(roleable)

    async def bulk_clear_cache(self, targets: Iterable[Any]) -> None:
        await self.cache.bulk_invalidate(targets)
