"""Tests for cache key builders (format, tenant segment, unsafe component encoding)."""

import fnmatch

import pytest

from porter.infrastructure.cache import keys


class TestKeyFormat:
    def test_participants_key(self) -> None:
        assert keys.participants_key("porter", "project", 7) == "porter:participants:project:7"

    def test_tenant_segment_appended(self) -> None:
        assert (
            keys.participants_key("porter", "project", 7, tenant="acme")
            == "porter:participants:project:7:t:acme"
        )

    def test_role_check_key(self) -> None:
        key = keys.role_check_key("porter", "user", 1, "project", 7, "any")
        assert key == "porter:role_check:user:1:project:7:any"

    def test_role_name_is_fingerprinted(self) -> None:
        key = keys.participants_with_role_key("porter", "project", 7, "team:lead")
        assert key.endswith(keys.role_hash("team:lead"))
        assert len(keys.role_hash("team:lead")) == keys.ROLE_HASH_LENGTH

    def test_assigned_entities_key(self) -> None:
        assert (
            keys.assigned_entities_key("porter", "user", 1, "project")
            == "porter:assigned_entities:user:1:project"
        )


class TestUnsafeComponents:
    @pytest.mark.parametrize("value", ["urn:user:1", "a*b", "x?y", "[0]", "#raw", "back\\slash"])
    def test_unsafe_value_is_fingerprinted(self, value: str) -> None:
        encoded = keys.key_component(value)
        assert encoded.startswith(keys.ENCODED_MARKER)
        assert len(encoded) == len(keys.ENCODED_MARKER) + keys.COMPONENT_HASH_LENGTH
        assert encoded == keys.key_component(value)

    def test_safe_value_kept_verbatim(self) -> None:
        assert keys.key_component("user-01_a.b") == "user-01_a.b"
        assert keys.key_component(42) == "42"

    def test_id_with_separator_yields_fixed_segment_count(self) -> None:
        key = keys.role_check_key("p", "user", "urn:user:1", "project", 7, "any", tenant="a:b")
        assert key.count(":") == 8
        assert keys.key_component("urn:user:1") in key

    def test_distinct_ids_do_not_collide(self) -> None:
        assert keys.participants_key("p", "project", "1:2") != keys.participants_key(
            "p", "project", "1:3"
        )

    def test_pair_patterns_match_encoded_keys(self) -> None:
        key = keys.role_check_key("p", "user", "urn:u:1", "project", 7, "any", tenant="acme")
        patterns = keys.pair_patterns("p", "user", "urn:u:1", "project", 7)
        assert any(fnmatch.fnmatchcase(key, pattern) for pattern in patterns)


class TestPatterns:
    def test_roleable_patterns_cover_every_entry_kind(self) -> None:
        patterns = keys.roleable_patterns("porter", "project", 7)
        assert "porter:participants:project:7" in patterns
        assert "porter:participants:project:7:*" in patterns
        assert "porter:role_check:*:*:project:7:*" in patterns
        assert "porter:assigned_entities:*:*:project" in patterns

    def test_tags(self) -> None:
        assert keys.entity_tag("porter", "project", 7) == "porter:tag:entity:project:7"
        assert keys.entity_type_tag("porter", "project") == "porter:tag:entity_type:project"
