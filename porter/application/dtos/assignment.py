"""DTOs for role assignments and participant listings (no dependency on ORM)."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from porter.domain.entities.entity_ref import EntityRef
from porter.domain.events import RoleEvent
from porter.domain.value_objects.role import RoleIdentity


@dataclass
class AssignmentResult:
    """Outcome of assign / change_role_on.

    created is False when the pair already held the role (no-op). removed
    lists roles that were dropped from the pair by the same operation.
    """

    assignable: EntityRef
    roleable: EntityRef
    role: RoleIdentity
    created: bool
    removed: list[RoleIdentity] = field(default_factory=list)
    events: list[RoleEvent] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.created or bool(self.removed)


@dataclass
class RemovalResult:
    """Outcome of remove: roles dropped from the pair (empty when nothing was held)."""

    assignable: EntityRef
    roleable: EntityRef
    removed: list[RoleIdentity] = field(default_factory=list)
    removed_count: int = 0
    events: list[RoleEvent] = field(default_factory=list)


@dataclass(frozen=True)
class Participant:
    """An assignable holding a role on a roleable. role is None for retired role keys."""

    assignable: EntityRef
    role_key: str
    role: RoleIdentity | None = None

    def to_cache(self) -> dict[str, Any]:
        return {**self.assignable.to_dict(), "role_key": self.role_key}

    def as_basic(self) -> dict[str, Any]:
        return {
            "participant_type": self.assignable.entity_type,
            "participant_id": self.assignable.entity_id,
            "role_key": self.role_key,
            "role_name": self.role.name if self.role else None,
            "role_label": self.role.label if self.role else None,
            "role_description": self.role.description if self.role else None,
        }


class ParticipantsCollection:
    """Ordered participants of one roleable with convenience projections."""

    def __init__(self, participants: Iterable[Participant] = ()) -> None:
        self._participants = list(participants)

    def __iter__(self) -> Iterator[Participant]:
        return iter(self._participants)

    def __len__(self) -> int:
        return len(self._participants)

    def __bool__(self) -> bool:
        return bool(self._participants)

    def to_list(self) -> list[Participant]:
        return list(self._participants)

    def participant_ids(self) -> list[str | int]:
        return [p.assignable.entity_id for p in self._participants]

    def as_basic_list(self) -> list[dict[str, Any]]:
        return [p.as_basic() for p in self._participants]

    def except_assignable(
        self, excluded: EntityRef | str | int | Iterable[str | int] | Any
    ) -> ParticipantsCollection:
        """Drop participants by entity (type and id) or by id(s).

        Ids are compared as strings so "7" and 7 match.
        """
        if hasattr(excluded, "entity_type") and hasattr(excluded, "entity_id"):
            ref = EntityRef.of(excluded)
            return ParticipantsCollection(
                p for p in self._participants if p.assignable.morph_key != ref.morph_key
            )
        if isinstance(excluded, (str, int)):
            excluded_ids = {str(excluded)}
        else:
            excluded_ids = {str(i) for i in excluded}
        return ParticipantsCollection(
            p for p in self._participants if str(p.assignable.entity_id) not in excluded_ids
        )

    def filter(self, predicate: Callable[[Participant], bool]) -> ParticipantsCollection:
        return ParticipantsCollection(p for p in self._participants if predicate(p))

    def with_role(self, role_name: str) -> ParticipantsCollection:
        return self.filter(lambda p: p.role is not None and p.role.name == role_name)
