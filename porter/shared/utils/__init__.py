"""Shared helpers: datetime and id generation."""

from porter.shared.utils.datetime import utc_now
from porter.shared.utils.generators import generate_ulid, generate_uuid

__all__ = ["generate_ulid", "generate_uuid", "utc_now"]
