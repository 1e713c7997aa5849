"""Role key codecs: role name <-> storage-safe role_key.

plain: key is the name. hashed: sha256(name ++ secret), one-way, so
resolution matches against every registered name. encrypted: reversible,
resolution decrypts directly.

Changing key_storage or SECRET_KEY after rows exist orphans every stored
key; this is a configuration hazard and no migration is attempted.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from porter.application.services.hash_service import HashService
from porter.domain.enums import KeyStorage
from porter.domain.exceptions import ConfigurationException, InvalidRoleKeyException

if TYPE_CHECKING:
    from porter.core.config import Settings
    from porter.infrastructure.security.role_key_cipher import RoleKeyCipher


class RoleKeyCodec(Protocol):
    """Derive a storage key from a role name and map it back."""

    storage: KeyStorage

    def derive_key(self, name: str) -> str:
        """Return the storage key for a role name (deterministic)."""
        ...

    def resolve_name(self, key: str, role_names: Iterable[str]) -> str | None:
        """Return the role name for key, or None if it matches no registered name.

        Raises InvalidRoleKeyException when the key is structurally invalid
        for this storage (encrypted only).
        """
        ...


class PlainKeyCodec:
    storage = KeyStorage.PLAIN

    def derive_key(self, name: str) -> str:
        return name

    def resolve_name(self, key: str, role_names: Iterable[str]) -> str | None:
        return key if key in set(role_names) else None


class HashedKeyCodec:
    """One-way keys. resolve_name is O(R): recompute each candidate's hash."""

    storage = KeyStorage.HASHED

    def __init__(self, secret: str, hash_service: HashService | None = None) -> None:
        self._secret = secret
        self._hash = hash_service or HashService()

    def derive_key(self, name: str) -> str:
        return self._hash.salted_hash(name, self._secret)

    def resolve_name(self, key: str, role_names: Iterable[str]) -> str | None:
        for name in role_names:
            if self.derive_key(name) == key:
                return name
        return None


class EncryptedKeyCodec:
    """Reversible keys; a key that fails to decrypt is corrupt, not absent."""

    storage = KeyStorage.ENCRYPTED

    def __init__(self, cipher: RoleKeyCipher) -> None:
        self._cipher = cipher

    def derive_key(self, name: str) -> str:
        return self._cipher.encrypt(name)

    def resolve_name(self, key: str, role_names: Iterable[str]) -> str | None:
        from porter.infrastructure.security.role_key_cipher import RoleKeyDecryptionError

        try:
            name = self._cipher.decrypt(key)
        except RoleKeyDecryptionError as e:
            raise InvalidRoleKeyException(self.storage.value, str(e)) from e
        return name if name in set(role_names) else None


def build_key_codec(settings: Settings) -> RoleKeyCodec:
    """Return the codec for settings.key_storage.

    Raises:
        ConfigurationException: hashed/encrypted storage without SECRET_KEY.
    """
    if settings.key_storage == KeyStorage.PLAIN:
        return PlainKeyCodec()
    secret = settings.secret_key.get_secret_value()
    if not secret:
        raise ConfigurationException(
            f"SECRET_KEY is required for key_storage={settings.key_storage.value!r}"
        )
    if settings.key_storage == KeyStorage.HASHED:
        return HashedKeyCodec(secret)
    from porter.infrastructure.security.role_key_cipher import RoleKeyCipher

    return EncryptedKeyCodec(RoleKeyCipher(secret))
