"""Repositories over the roster table."""

from porter.infrastructure.persistence.repositories.roster_repo import RosterRepository

__all__ = ["RosterRepository"]
