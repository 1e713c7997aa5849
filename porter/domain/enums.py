"""Domain enums: configuration choices and tenant violation kinds."""

from enum import Enum


class AssignmentStrategy(str, Enum):
    """Whether a new role on a pair replaces existing roles or is added next to them."""

    REPLACE = "replace"
    ADD = "add"


class KeyStorage(str, Enum):
    """How role names are represented in the role_key column."""

    PLAIN = "plain"
    HASHED = "hashed"
    ENCRYPTED = "encrypted"


class IdStrategy(str, Enum):
    """Primary key and morph id column types for the roster table."""

    ULID = "ulid"
    UUID = "uuid"
    INTEGER = "integer"


class TenantViolation(str, Enum):
    """Reason a cross-tenant assignment was rejected."""

    ASSIGNABLE_WITHOUT_TENANT = "assignable_without_tenant"
    ROLEABLE_WITHOUT_TENANT = "roleable_without_tenant"
    MISMATCH = "mismatch"


class CachePurpose(str, Enum):
    """TTL class of a cache entry."""

    ROLE_CHECK = "role_check"
    PARTICIPANTS = "participants"
    ASSIGNED_ENTITIES = "assigned_entities"
