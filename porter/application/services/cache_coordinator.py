"""Cache coordinator: read-through caching and invalidation for role lookups.

Owns the mapping from entities to cache keys (tenant segment, TTL class,
tags) and the invalidation sets for a pair, a roleable and a bulk of
roleables. The engine invalidates after commit, so readers may see a
stale entry for the duration of one round-trip.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, TypeVar

from porter.application.services.tenant_policy import (
    TenantPolicy,
    resolve_assignable_tenant,
    resolve_roleable_tenant,
)
from porter.core.config import Settings
from porter.core.constants import ROLE_CHECK_ANY, ROLE_CHECK_CURRENT
from porter.domain.enums import CachePurpose
from porter.infrastructure.cache import keys
from porter.infrastructure.cache.cache_protocol import CacheProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheCoordinator:
    """Builds keys for engine reads and clears them on mutation.

    With cache_use_tags every entry is registered under the tags of the
    entities it depends on and invalidation flushes those tags. Without
    tags, roleable-wide invalidation falls back to SCAN patterns.
    """

    def __init__(
        self,
        cache: CacheProtocol | None,
        settings: Settings,
        tenant_policy: TenantPolicy,
        role_names: Callable[[], Sequence[str]],
    ) -> None:
        self.cache = cache
        self.settings = settings
        self.tenant_policy = tenant_policy
        self._role_names = role_names
        self.prefix = settings.cache_key_prefix
        self.use_tags = settings.cache_use_tags

    def _backend(self) -> CacheProtocol | None:
        """The cache to use for this call, or None when caching is off or unreachable."""
        if not self.settings.cache_enabled or self.cache is None:
            return None
        return self.cache if self.cache.is_available() else None

    @property
    def enabled(self) -> bool:
        return self._backend() is not None

    def ttl(self, purpose: CachePurpose) -> int:
        return self.settings.ttl_for(purpose.value)

    # -- key builders ----------------------------------------------------

    def _assignable_tenant(self, assignable: Any) -> str | None:
        return self.tenant_policy.cache_tenant(resolve_assignable_tenant(assignable))

    def _roleable_tenant(self, roleable: Any) -> str | None:
        return self.tenant_policy.cache_tenant(resolve_roleable_tenant(roleable))

    def participants_key(self, roleable: Any) -> str:
        return keys.participants_key(
            self.prefix,
            roleable.entity_type,
            roleable.entity_id,
            self._roleable_tenant(roleable),
        )

    def participants_with_role_key(self, roleable: Any, role_name: str) -> str:
        return keys.participants_with_role_key(
            self.prefix,
            roleable.entity_type,
            roleable.entity_id,
            role_name,
            self._roleable_tenant(roleable),
        )

    def role_check_key(
        self, assignable: Any, roleable: Any, role_name: str | None = None, *, current: bool = False
    ) -> str:
        """Key for a role check. role_name None means "any role"; current=True the held role."""
        if current:
            variant = ROLE_CHECK_CURRENT
        elif role_name is None:
            variant = ROLE_CHECK_ANY
        else:
            variant = keys.role_hash(role_name)
        return keys.role_check_key(
            self.prefix,
            assignable.entity_type,
            assignable.entity_id,
            roleable.entity_type,
            roleable.entity_id,
            variant,
            self._assignable_tenant(assignable),
        )

    def assigned_entities_key(self, assignable: Any, roleable_type: str) -> str:
        return keys.assigned_entities_key(
            self.prefix,
            assignable.entity_type,
            assignable.entity_id,
            roleable_type,
            self._assignable_tenant(assignable),
        )

    def tags_for(self, *entities: Any) -> list[str]:
        if not self.use_tags:
            return []
        return [keys.entity_tag(self.prefix, e.entity_type, e.entity_id) for e in entities]

    def type_tag(self, roleable_type: str) -> list[str]:
        if not self.use_tags:
            return []
        return [keys.entity_type_tag(self.prefix, roleable_type)]

    # -- read-through ----------------------------------------------------

    async def remember(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[T]],
        tags: Iterable[str] = (),
    ) -> T:
        """Return the cached value for key, or compute, store and return it.

        None results are not cached. Concurrent misses each compute.
        """
        cache = self._backend()
        if cache is None:
            return await compute()
        cached = await cache.get(key)
        if cached is not None:
            return cached
        value = await compute()
        if value is not None:
            await cache.set(key, value, ttl=ttl, tags=tags)
        return value

    # -- invalidation ----------------------------------------------------

    async def invalidate(self, *cache_keys: str) -> int:
        cache = self._backend()
        if cache is None or not cache_keys:
            return 0
        return await cache.delete(*cache_keys)

    async def invalidate_pair(self, assignable: Any, roleable: Any) -> None:
        """Clear every entry a mutation on (assignable, roleable) can change.

        Covers the roleable's participant lists, the pair's role checks for
        every registered role and the assignable's assigned-entities list
        for the roleable's type. Assignable-keyed entries are cleared in
        every tenant segment, not only the assignable's current one.
        """
        cache = self._backend()
        if cache is None:
            return
        if self.use_tags:
            await cache.flush_tags(*self.tags_for(assignable, roleable))
        elif self.tenant_policy.segments_cache:
            for pattern in keys.pair_patterns(
                self.prefix,
                assignable.entity_type,
                assignable.entity_id,
                roleable.entity_type,
                roleable.entity_id,
            ):
                await cache.delete_pattern(pattern)
        pair_keys = [
            self.participants_key(roleable),
            self.role_check_key(assignable, roleable),
            self.role_check_key(assignable, roleable, current=True),
            self.assigned_entities_key(assignable, roleable.entity_type),
        ]
        pair_keys.extend(
            self.role_check_key(assignable, roleable, name) for name in self._role_names()
        )
        pair_keys.extend(
            self.participants_with_role_key(roleable, name) for name in self._role_names()
        )
        await cache.delete(*pair_keys)
        logger.debug(
            "Cache invalidated for pair %s:%s -> %s:%s",
            assignable.entity_type,
            assignable.entity_id,
            roleable.entity_type,
            roleable.entity_id,
        )

    async def invalidate_roleable(self, roleable: Any) -> None:
        """Clear every entry depending on roleable, for all assignables and tenants."""
        cache = self._backend()
        if cache is None:
            return
        if self.use_tags:
            await cache.flush_tags(
                *self.tags_for(roleable), *self.type_tag(roleable.entity_type)
            )
            return
        for pattern in keys.roleable_patterns(
            self.prefix, roleable.entity_type, roleable.entity_id
        ):
            await cache.delete_pattern(pattern)

    async def bulk_invalidate(self, targets: Iterable[Any]) -> None:
        """invalidate_roleable for each target."""
        for roleable in targets:
            await self.invalidate_roleable(roleable)
