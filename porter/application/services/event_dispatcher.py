"""In-process dispatcher for role events.

Subscribers may be plain functions or coroutines. Events are delivered in
the order they are dispatched, each handler awaited before the next, so
RoleRemoved from a role change is always observed before RoleAssigned.
A failing handler is logged and does not affect other handlers or the
already committed mutation.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from porter.domain.events import RoleEvent

logger = logging.getLogger(__name__)

RoleEventHandler = Callable[[RoleEvent], Awaitable[Any] | Any]


class EventDispatcher:
    """Type-keyed subscriptions plus catch-all subscribers."""

    def __init__(self) -> None:
        self._handlers: dict[type[RoleEvent], list[RoleEventHandler]] = {}
        self._global_handlers: list[RoleEventHandler] = []

    def subscribe(self, event_type: type[RoleEvent], handler: RoleEventHandler) -> None:
        """Call handler for every event of event_type (and its subclasses)."""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to %s", event_type.__name__)

    def subscribe_all(self, handler: RoleEventHandler) -> None:
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: type[RoleEvent], handler: RoleEventHandler) -> bool:
        """Remove handler; returns True if it was subscribed."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def clear(self) -> None:
        self._handlers.clear()
        self._global_handlers.clear()

    def _handlers_for(self, event: RoleEvent) -> list[RoleEventHandler]:
        matched: list[RoleEventHandler] = []
        for event_type, handlers in self._handlers.items():
            if isinstance(event, event_type):
                matched.extend(handlers)
        return matched + self._global_handlers

    async def dispatch(self, event: RoleEvent) -> None:
        for handler in self._handlers_for(event):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Role event handler %r failed for %s",
                    handler,
                    event.event_name,
                )

    async def dispatch_all(self, events: Iterable[RoleEvent]) -> None:
        for event in events:
            await self.dispatch(event)
