"""Tests for role key codecs (plain, hashed, encrypted) and build_key_codec."""

import pytest

from porter.application.services.role_keys import (
    EncryptedKeyCodec,
    HashedKeyCodec,
    PlainKeyCodec,
    build_key_codec,
)
from porter.core.config import Settings
from porter.domain.enums import KeyStorage
from porter.domain.exceptions import InvalidRoleKeyException
from porter.infrastructure.security.role_key_cipher import RoleKeyCipher, RoleKeyDecryptionError

NAMES = ["admin", "manager", "editor"]
SECRET = "0123456789abcdef0123456789abcdef"


class TestPlainKeyCodec:
    def test_key_is_name(self) -> None:
        codec = PlainKeyCodec()
        assert codec.derive_key("editor") == "editor"
        assert codec.resolve_name("editor", NAMES) == "editor"

    def test_unknown_key(self) -> None:
        assert PlainKeyCodec().resolve_name("ghost", NAMES) is None


class TestHashedKeyCodec:
    """Hashed keys are sha256(name ++ secret), deterministic and not the name."""

    def test_deterministic_and_opaque(self) -> None:
        codec = HashedKeyCodec(SECRET)
        key = codec.derive_key("editor")
        assert key == codec.derive_key("editor")
        assert key != "editor"
        assert len(key) == 64

    def test_resolves_by_matching_candidates(self) -> None:
        codec = HashedKeyCodec(SECRET)
        assert codec.resolve_name(codec.derive_key("manager"), NAMES) == "manager"

    def test_other_secret_does_not_resolve(self) -> None:
        key = HashedKeyCodec("other-secret").derive_key("manager")
        assert HashedKeyCodec(SECRET).resolve_name(key, NAMES) is None


class TestEncryptedKeyCodec:
    def test_round_trip(self) -> None:
        codec = EncryptedKeyCodec(RoleKeyCipher(SECRET))
        key = codec.derive_key("admin")
        assert key != "admin"
        assert codec.resolve_name(key, NAMES) == "admin"

    def test_deterministic(self) -> None:
        codec = EncryptedKeyCodec(RoleKeyCipher(SECRET))
        assert codec.derive_key("admin") == codec.derive_key("admin")

    def test_corrupt_key_raises_invalid_role_key(self) -> None:
        codec = EncryptedKeyCodec(RoleKeyCipher(SECRET))
        with pytest.raises(InvalidRoleKeyException) as exc_info:
            codec.resolve_name("not-a-ciphertext", NAMES)
        assert exc_info.value.error_code == "INVALID_ROLE_KEY"

    def test_valid_key_for_retired_role_is_none(self) -> None:
        codec = EncryptedKeyCodec(RoleKeyCipher(SECRET))
        assert codec.resolve_name(codec.derive_key("retired"), NAMES) is None


class TestRoleKeyCipher:
    def test_wrong_secret_fails_authentication(self) -> None:
        token = RoleKeyCipher(SECRET).encrypt("admin")
        with pytest.raises(RoleKeyDecryptionError):
            RoleKeyCipher("another-secret").decrypt(token)

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            RoleKeyCipher("")


class TestBuildKeyCodec:
    def test_plain_by_default(self) -> None:
        assert isinstance(build_key_codec(Settings(_env_file=None)), PlainKeyCodec)

    @pytest.mark.parametrize(
        ("storage", "codec_type"),
        [(KeyStorage.HASHED, HashedKeyCodec), (KeyStorage.ENCRYPTED, EncryptedKeyCodec)],
    )
    def test_secret_backed_codecs(self, storage: KeyStorage, codec_type: type) -> None:
        settings = Settings(_env_file=None, key_storage=storage, secret_key=SECRET)
        assert isinstance(build_key_codec(settings), codec_type)

    def test_missing_secret_rejected_at_settings_load(self) -> None:
        with pytest.raises(ValueError, match="SECRET_KEY"):
            Settings(_env_file=None, key_storage=KeyStorage.HASHED)
