"""Tests for Participant and ParticipantsCollection projections."""

from porter.application.dtos.assignment import Participant, ParticipantsCollection
from porter.domain.entities.entity_ref import EntityRef
from porter.domain.value_objects.role import RoleIdentity

EDITOR = RoleIdentity("editor", 4, "Editor", "Edits things")
VIEWER = RoleIdentity("viewer", 2)


def _collection() -> ParticipantsCollection:
    return ParticipantsCollection(
        [
            Participant(EntityRef("user", "1"), "editor", EDITOR),
            Participant(EntityRef("user", "2"), "viewer", VIEWER),
            Participant(EntityRef("bot", "1"), "retired", None),
        ]
    )


def test_as_basic_includes_role_details() -> None:
    basic = _collection().as_basic_list()[0]
    assert basic == {
        "participant_type": "user",
        "participant_id": "1",
        "role_key": "editor",
        "role_name": "editor",
        "role_label": "Editor",
        "role_description": "Edits things",
    }


def test_retired_role_has_no_name() -> None:
    assert _collection().as_basic_list()[2]["role_name"] is None


def test_except_assignable_by_entity_keeps_same_id_other_type() -> None:
    remaining = _collection().except_assignable(EntityRef("user", 1))
    assert [p.assignable.morph_key for p in remaining] == [("user", "2"), ("bot", "1")]


def test_except_assignable_by_ids() -> None:
    assert _collection().except_assignable([1, "2"]).participant_ids() == []
    assert len(_collection().except_assignable(2)) == 2


def test_with_role_and_bool() -> None:
    collection = _collection()
    assert collection.with_role("viewer").participant_ids() == ["2"]
    assert not collection.with_role("admin")
