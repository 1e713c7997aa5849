"""Reversible role key encryption (AES-SIV, key derived from SECRET_KEY via HKDF).

AES-SIV is deterministic: the same role name always encrypts to the same
ciphertext, so encrypted keys can be matched with equality queries and
participate in the roster unique constraint.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESSIV
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

_HKDF_SALT = b"porter-role-keys"
_HKDF_INFO = b"porter:role_key:v1"
_KEY_LENGTH = 64  # AES-256-SIV


class RoleKeyDecryptionError(ValueError):
    """Raised when a ciphertext is not valid base64 or fails authentication."""


class RoleKeyCipher:
    """Encrypt/decrypt role names with a key derived from the application secret."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("RoleKeyCipher requires a non-empty secret")
        key = HKDF(
            algorithm=hashes.SHA256(),
            length=_KEY_LENGTH,
            salt=_HKDF_SALT,
            info=_HKDF_INFO,
        ).derive(secret.encode())
        self._aead = AESSIV(key)

    def encrypt(self, plaintext: str) -> str:
        """Return urlsafe base64 ciphertext for plaintext."""
        token = self._aead.encrypt(plaintext.encode(), None)
        return base64.urlsafe_b64encode(token).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Return plaintext; raise RoleKeyDecryptionError on malformed or tampered input."""
        try:
            token = base64.urlsafe_b64decode(ciphertext.encode())
        except (binascii.Error, ValueError) as e:
            raise RoleKeyDecryptionError(f"not base64: {e}") from e
        try:
            plain = self._aead.decrypt(token, None)
        except InvalidTag as e:
            raise RoleKeyDecryptionError("authentication failed") from e
        except ValueError as e:
            raise RoleKeyDecryptionError(str(e)) from e
        try:
            return plain.decode()
        except UnicodeDecodeError as e:
            raise RoleKeyDecryptionError("plaintext is not UTF-8") from e
