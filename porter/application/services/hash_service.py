"""Hash service for one-way role keys (salted digest + algorithm)."""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod


class HashAlgorithm(ABC):
    """Abstract hash algorithm (OCP)."""

    @abstractmethod
    def hash(self, data: str) -> str:
        """Compute hash of input string."""
        ...


class SHA256Algorithm(HashAlgorithm):
    """SHA-256 implementation."""

    def hash(self, data: str) -> str:
        return hashlib.sha256(data.encode()).hexdigest()


class HashService:
    """Single source of truth for salted role key digests."""

    def __init__(self, algorithm: HashAlgorithm | None = None) -> None:
        self.algorithm = algorithm or SHA256Algorithm()

    def salted_hash(self, value: str, secret: str) -> str:
        """Return hash(value ++ secret); deterministic for a fixed secret."""
        return self.algorithm.hash(f"{value}{secret}")

    def fingerprint(self, value: str) -> str:
        """Unsalted digest, used to keep arbitrary stored keys out of cache key text."""
        return self.algorithm.hash(value)
