"""Cache protocol consumed by the cache coordinator (DIP)."""

from collections.abc import Iterable
from typing import Any, Protocol


class CacheProtocol(Protocol):
    """Protocol for cache backends (Redis in production, a dict in tests)."""

    def is_available(self) -> bool:
        """Return True if cache is connected and usable."""
        ...

    async def get(self, key: str) -> Any:
        """Return cached value or None."""
        ...

    async def set(
        self, key: str, value: Any, ttl: int = 300, tags: Iterable[str] = ()
    ) -> bool:
        """Store value with TTL in seconds, registering key under each tag."""
        ...

    async def delete(self, *keys: str) -> int:
        """Remove keys from cache; return number removed."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Remove keys matching a glob pattern; return number removed."""
        ...

    async def flush_tags(self, *tags: str) -> int:
        """Remove every key registered under any of tags; return number removed."""
        ...
