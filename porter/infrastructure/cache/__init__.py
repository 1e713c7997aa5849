"""Cache: Redis service and cache key utilities.

Used by the cache coordinator for role checks, participant lists and
assigned-entity lists. Key format is in keys.py (DRY).
"""

from porter.infrastructure.cache.cache_protocol import CacheProtocol
from porter.infrastructure.cache.redis_cache import CacheService

__all__ = ["CacheProtocol", "CacheService"]
