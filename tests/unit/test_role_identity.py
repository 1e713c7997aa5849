"""Tests for RoleIdentity (hierarchy comparisons, validation, labels)."""

import pytest

from porter.domain.value_objects.role import RoleIdentity


class TestRoleIdentityComparison:
    """Roles compare by level only."""

    def test_higher_and_lower(self) -> None:
        manager = RoleIdentity("manager", 5)
        editor = RoleIdentity("editor", 4)
        assert manager.is_higher_than(editor)
        assert editor.is_lower_than(manager)
        assert not editor.is_higher_than(manager)

    def test_at_least_is_inclusive(self) -> None:
        manager = RoleIdentity("manager", 5)
        assert manager.is_at_least(RoleIdentity("manager", 5))
        assert manager.is_at_least(RoleIdentity("viewer", 2))
        assert not RoleIdentity("viewer", 2).is_at_least(manager)

    def test_or_equal_variants(self) -> None:
        a = RoleIdentity("a", 3)
        b = RoleIdentity("b", 3)
        assert a.is_equal_to(b)
        assert a.is_lower_than_or_equal(b)
        assert a.is_higher_than_or_equal(b)


class TestRoleIdentityValidation:
    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            RoleIdentity("  ", 1)

    def test_level_below_one_rejected(self) -> None:
        with pytest.raises(ValueError):
            RoleIdentity("nobody", 0)

    def test_label_defaults_from_name(self) -> None:
        assert RoleIdentity("team_lead", 3).label == "Team Lead"

    def test_description_ignored_in_equality(self) -> None:
        assert RoleIdentity("editor", 4, "Editor", "one") == RoleIdentity("editor", 4, "Editor", "two")

    def test_str_is_name(self) -> None:
        assert str(RoleIdentity("editor", 4)) == "editor"
