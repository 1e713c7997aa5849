"""Core constants: cache key segments and shared literal values.

Single source of truth for cache key structure. Used by
porter.infrastructure.cache.keys and the cache coordinator.
"""

# Cache key segments (prefix comes from settings.cache_key_prefix)
CACHE_SEGMENT_PARTICIPANTS = "participants"
CACHE_SEGMENT_ROLE_CHECK = "role_check"
CACHE_SEGMENT_ASSIGNED_ENTITIES = "assigned_entities"
CACHE_SEGMENT_TENANT = "t"
CACHE_SEGMENT_TAG = "tag"

# Role-check variants that are not tied to one role
ROLE_CHECK_ANY = "any"
ROLE_CHECK_CURRENT = "current"

# Delimiter for composite keys
CACHE_KEY_SEP = ":"

# Redis pub/sub channel for role events
ROLE_EVENTS_CHANNEL = "porter-roles"
