"""Redis-based cache service for role lookups.

Provides async Redis caching with TTL and optional tag sets. Used by the
cache coordinator for role checks, participant lists and assigned-entity
lists. Key format lives in porter.infrastructure.cache.keys (DRY).

Every failure is logged and reported as a miss (get) or a no-op
(writes and deletes); cache errors never reach callers.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

import redis.asyncio as redis

from porter.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNLINK_CHUNK = 500


class CacheService:
    """Async Redis cache service with TTL and tag support.

    Uses porter.core.config for connection settings. Call connect() at
    startup and disconnect() at shutdown. A connection error triggers one
    reconnect attempt before the operation is abandoned.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize cache service.

        Args:
            redis_client: Optional Redis client for testing or DI; treated as connected.
            settings: Optional settings; defaults to get_settings().
        """
        self.redis = redis_client
        self.settings = settings or get_settings()
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish Redis connection. Call on app startup."""
        if self.redis is not None:
            return
        password = self.settings.redis_password
        try:
            self.redis = redis.Redis(
                host=self.settings.redis_host,
                port=self.settings.redis_port,
                db=self.settings.redis_db,
                password=password.get_secret_value() if password else None,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
            )
            await self.redis.ping()
            self._connected = True
            logger.info(
                "Redis cache connected: %s:%s",
                self.settings.redis_host,
                self.settings.redis_port,
            )
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis connection failed: %s. Cache disabled.", e)
            self._connected = False
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection. Call on app shutdown."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self._connected = False
            logger.info("Redis cache disconnected")

    async def _reconnect(self) -> bool:
        """Drop the client and connect again. Returns True if reconnected."""
        if self.redis is None:
            return False
        try:
            await self.redis.aclose()
        except redis.RedisError:
            logger.debug("Ignoring error while closing stale Redis client")
        self.redis = None
        self._connected = False
        await self.connect()
        return self._connected

    def is_available(self) -> bool:
        """Return True if Redis is connected and usable."""
        return self._connected and self.redis is not None

    async def _execute(
        self,
        operation: str,
        target: str,
        call: Callable[[redis.Redis], Awaitable[T]],
        default: T,
    ) -> T:
        """Run call against the client; reconnect once on connection loss.

        Returns default when Redis is unavailable or the call fails.
        """
        if not self.is_available() or self.redis is None:
            return default
        try:
            return await call(self.redis)
        except (redis.ConnectionError, redis.TimeoutError):
            if await self._reconnect() and self.redis is not None:
                try:
                    return await call(self.redis)
                except redis.RedisError:
                    logger.exception("Cache %s error for %s after reconnect", operation, target)
                    return default
            logger.warning("Cache %s unavailable for %s (Redis disconnected)", operation, target)
            return default
        except redis.RedisError:
            logger.exception("Cache %s error for %s", operation, target)
            return default

    async def get(self, key: str) -> Any | None:
        """Return cached value (JSON-deserialized) or None if missing/unavailable.

        A value that is not valid JSON is logged and treated as a miss.
        """
        raw = await self._execute("get", key, lambda r: r.get(key), None)
        if raw is None:
            logger.debug("Cache MISS: %s", key)
            return None
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Cache value for %s is not valid JSON; treating as miss", key)
            return None
        logger.debug("Cache HIT: %s", key)
        return value

    async def set(
        self, key: str, value: Any, ttl: int = 300, tags: Iterable[str] = ()
    ) -> bool:
        """Store value with TTL and register key in each tag set. Returns True on success."""
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError):
            logger.warning("Cache value for %s is not JSON-serializable; not cached", key)
            return False
        tag_list = list(tags)

        async def _store(client: redis.Redis) -> bool:
            async with client.pipeline(transaction=False) as pipe:
                pipe.setex(key, ttl, serialized)
                for tag in tag_list:
                    pipe.sadd(tag, key)
                    # tag set outlives its longest member
                    pipe.expire(tag, ttl, gt=True)
                    pipe.expire(tag, ttl, nx=True)
                await pipe.execute()
            return True

        stored = await self._execute("set", key, _store, False)
        if stored:
            logger.debug("Cache SET: %s (TTL: %ss, tags: %d)", key, ttl, len(tag_list))
        return stored

    async def delete(self, *keys: str) -> int:
        """Remove keys. Returns number of keys deleted."""
        if not keys:
            return 0
        deleted = await self._execute(
            "delete", ", ".join(keys), lambda r: r.unlink(*keys), 0
        )
        logger.debug("Cache DELETE: %s (%s keys)", keys, deleted)
        return int(deleted or 0)

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern using SCAN + batched UNLINK (non-blocking).

        Args:
            pattern: Redis SCAN match pattern (e.g. porter:participants:project:1:*).

        Returns:
            Number of keys deleted.
        """

        async def _scan_unlink(client: redis.Redis) -> int:
            deleted = 0
            chunk: list[str] = []
            async for key in client.scan_iter(match=pattern, count=_UNLINK_CHUNK):
                chunk.append(key)
                if len(chunk) >= _UNLINK_CHUNK:
                    deleted += int(await client.unlink(*chunk) or 0)
                    chunk = []
            if chunk:
                deleted += int(await client.unlink(*chunk) or 0)
            return deleted

        deleted = await self._execute("delete_pattern", pattern, _scan_unlink, 0)
        if deleted > 0:
            logger.info("Cache INVALIDATE: %s (%s keys)", pattern, deleted)
        return deleted

    async def flush_tags(self, *tags: str) -> int:
        """Delete every key registered under any of tags, then the tag sets themselves."""
        if not tags:
            return 0

        async def _flush(client: redis.Redis) -> int:
            members: set[str] = set()
            for tag in tags:
                members.update(await client.smembers(tag))
            deleted = 0
            batch = list(members)
            for start in range(0, len(batch), _UNLINK_CHUNK):
                deleted += int(await client.unlink(*batch[start : start + _UNLINK_CHUNK]) or 0)
            await client.unlink(*tags)
            return deleted

        deleted = await self._execute("flush_tags", ", ".join(tags), _flush, 0)
        if deleted > 0:
            logger.info("Cache INVALIDATE tags %s (%s keys)", tags, deleted)
        return deleted
