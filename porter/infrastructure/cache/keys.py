"""Cache key builders. Single place for key format (DRY).

Entity types, ids and tenant keys are written into keys verbatim unless
they contain CACHE_KEY_SEP, a SCAN glob metacharacter or the encoding
marker; such components are replaced by a marked fingerprint so every id
yields an unambiguous key and exact patterns. Role names are always
fingerprinted.
"""

from porter.application.services.hash_service import HashService
from porter.core.constants import (
    CACHE_KEY_SEP,
    CACHE_SEGMENT_ASSIGNED_ENTITIES,
    CACHE_SEGMENT_PARTICIPANTS,
    CACHE_SEGMENT_ROLE_CHECK,
    CACHE_SEGMENT_TAG,
    CACHE_SEGMENT_TENANT,
)

_hash_service = HashService()
ROLE_HASH_LENGTH = 16
COMPONENT_HASH_LENGTH = 32
ENCODED_MARKER = "#"
_UNSAFE_CHARS = frozenset(CACHE_KEY_SEP + "*?[]\\" + ENCODED_MARKER)


def key_component(value: str | int) -> str:
    """Return value as a key component, fingerprinted when it is not key-safe."""
    text = str(value)
    if _UNSAFE_CHARS.isdisjoint(text):
        return text
    return ENCODED_MARKER + _hash_service.fingerprint(text)[:COMPONENT_HASH_LENGTH]


def _join(*parts: object) -> str:
    return CACHE_KEY_SEP.join(str(p) for p in parts)


def _entity_parts(entity_type: str, entity_id: str | int) -> tuple[str, str]:
    return key_component(entity_type), key_component(entity_id)


def _tenant_suffix(tenant: str | None) -> str:
    if tenant is None:
        return ""
    return f"{CACHE_KEY_SEP}{CACHE_SEGMENT_TENANT}{CACHE_KEY_SEP}{key_component(tenant)}"


def role_hash(role_name: str) -> str:
    """Short stable fingerprint of a role name for use inside keys."""
    return _hash_service.fingerprint(role_name)[:ROLE_HASH_LENGTH]


def participants_key(
    prefix: str, roleable_type: str, roleable_id: str | int, tenant: str | None = None
) -> str:
    """Cache key for all participants of a roleable."""
    r_type, r_id = _entity_parts(roleable_type, roleable_id)
    return _join(prefix, CACHE_SEGMENT_PARTICIPANTS, r_type, r_id) + _tenant_suffix(tenant)


def participants_with_role_key(
    prefix: str,
    roleable_type: str,
    roleable_id: str | int,
    role_name: str,
    tenant: str | None = None,
) -> str:
    """Cache key for participants of a roleable holding one role."""
    r_type, r_id = _entity_parts(roleable_type, roleable_id)
    return _join(
        prefix, CACHE_SEGMENT_PARTICIPANTS, r_type, r_id, role_hash(role_name)
    ) + _tenant_suffix(tenant)


def role_check_key(
    prefix: str,
    assignable_type: str,
    assignable_id: str | int,
    roleable_type: str,
    roleable_id: str | int,
    variant: str,
    tenant: str | None = None,
) -> str:
    """Cache key for a role check on a pair.

    variant is a role_hash() value, ROLE_CHECK_ANY or ROLE_CHECK_CURRENT.
    """
    a_type, a_id = _entity_parts(assignable_type, assignable_id)
    r_type, r_id = _entity_parts(roleable_type, roleable_id)
    return _join(
        prefix, CACHE_SEGMENT_ROLE_CHECK, a_type, a_id, r_type, r_id, variant
    ) + _tenant_suffix(tenant)


def assigned_entities_key(
    prefix: str,
    assignable_type: str,
    assignable_id: str | int,
    roleable_type: str,
    tenant: str | None = None,
) -> str:
    """Cache key for the roleables of one type an assignable holds roles on."""
    a_type, a_id = _entity_parts(assignable_type, assignable_id)
    return _join(
        prefix, CACHE_SEGMENT_ASSIGNED_ENTITIES, a_type, a_id, key_component(roleable_type)
    ) + _tenant_suffix(tenant)


def entity_tag(prefix: str, entity_type: str, entity_id: str | int) -> str:
    """Tag set key grouping every entry that depends on one entity."""
    e_type, e_id = _entity_parts(entity_type, entity_id)
    return _join(prefix, CACHE_SEGMENT_TAG, "entity", e_type, e_id)


def entity_type_tag(prefix: str, entity_type: str) -> str:
    """Tag set key grouping assigned-entities lists of one roleable type."""
    return _join(prefix, CACHE_SEGMENT_TAG, "entity_type", key_component(entity_type))


def roleable_patterns(prefix: str, roleable_type: str, roleable_id: str | int) -> list[str]:
    """SCAN patterns matching every entry that depends on a roleable."""
    r_type, r_id = _entity_parts(roleable_type, roleable_id)
    participants = _join(prefix, CACHE_SEGMENT_PARTICIPANTS, r_type, r_id)
    assigned = _join(prefix, CACHE_SEGMENT_ASSIGNED_ENTITIES, "*", "*", r_type)
    return [
        participants,
        f"{participants}{CACHE_KEY_SEP}*",
        _join(prefix, CACHE_SEGMENT_ROLE_CHECK, "*", "*", r_type, r_id, "*"),
        assigned,
        f"{assigned}{CACHE_KEY_SEP}*",
    ]


def pair_patterns(
    prefix: str,
    assignable_type: str,
    assignable_id: str | int,
    roleable_type: str,
    roleable_id: str | int,
) -> list[str]:
    """SCAN patterns for the assignable-keyed entries of one pair in every tenant segment.

    Matches every role-check variant of the pair and the assignable's
    assigned-entities list for the roleable's type.
    """
    a_type, a_id = _entity_parts(assignable_type, assignable_id)
    r_type, r_id = _entity_parts(roleable_type, roleable_id)
    assigned = _join(prefix, CACHE_SEGMENT_ASSIGNED_ENTITIES, a_type, a_id, r_type)
    return [
        _join(prefix, CACHE_SEGMENT_ROLE_CHECK, a_type, a_id, r_type, r_id, "*"),
        assigned,
        f"{assigned}{CACHE_KEY_SEP}*",
    ]
