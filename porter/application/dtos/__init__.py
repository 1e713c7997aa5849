"""Application DTOs (no dependency on ORM)."""

from porter.application.dtos.assignment import (
    AssignmentResult,
    Participant,
    ParticipantsCollection,
    RemovalResult,
)

__all__ = ["AssignmentResult", "Participant", "ParticipantsCollection", "RemovalResult"]
