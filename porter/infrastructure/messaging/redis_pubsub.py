"""Redis Pub/Sub broadcast of role events.

Subscribed to the event dispatcher when events_broadcast is enabled.
Each RoleAssigned / RoleRemoved is published as JSON to the
porter-roles channel so other processes can react (e.g. drop local state).
"""

from __future__ import annotations

import json
import logging

import redis.asyncio as redis

from porter.core.config import Settings, get_settings
from porter.core.constants import ROLE_EVENTS_CHANNEL
from porter.domain.events import RoleEvent

logger = logging.getLogger(__name__)


class RoleEventPublisher:
    """Publishes role events to a Redis channel. Never raises."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
        channel: str = ROLE_EVENTS_CHANNEL,
    ) -> None:
        """Initialize. Pass redis_client to share the cache connection or for testing."""
        self.redis = redis_client
        self.settings = settings or get_settings()
        self.channel = channel
        self._owns_client = redis_client is None
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Open a dedicated connection when no client was injected."""
        if self._connected:
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
            )
            await self.redis.ping()
            self._connected = True
            logger.info("Redis pub/sub connected (channel %s)", self.channel)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis pub/sub connection failed: %s", e)
            self._connected = False
            self.redis = None

    async def disconnect(self) -> None:
        if self.redis and self._owns_client:
            await self.redis.aclose()
            logger.info("Redis pub/sub disconnected")
        self.redis = None
        self._connected = False

    def is_available(self) -> bool:
        return self._connected and self.redis is not None

    async def publish(self, event: RoleEvent) -> bool:
        """Publish event; returns False if Redis is unavailable or the publish failed."""
        if not self.is_available() or self.redis is None:
            logger.debug("Redis not available, skipping publish of %s", event.event_name)
            return False
        try:
            await self.redis.publish(self.channel, json.dumps(event.to_dict()))
        except redis.RedisError:
            logger.exception("Failed to publish %s", event.event_name)
            return False
        logger.debug("Published %s to %s", event.event_name, self.channel)
        return True
