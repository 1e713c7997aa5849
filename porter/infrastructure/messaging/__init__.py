"""Messaging: Redis pub/sub broadcast of role events."""
