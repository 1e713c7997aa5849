"""ID generators for roster primary keys (ULID / UUID strategies)."""

import uuid

from ulid import ULID


def generate_ulid() -> str:
    """Return a lexicographically sortable ULID string (26 chars)."""
    return str(ULID())


def generate_uuid() -> uuid.UUID:
    """Return a random UUID4."""
    return uuid.uuid4()
