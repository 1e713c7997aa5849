"""Persistence models: roster ORM entity and mixins."""

from porter.infrastructure.persistence.models.roster import Roster

__all__ = ["Roster"]
