"""
Cache Repository Interfaces

Abstract interfaces for the cache store and the two remote collaborators
the retrieval pipeline depends on.
"""

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from .value_objects import CacheValue


class CacheStoreRepository(ABC):
    """
    Abstract store of resolved lookup outcomes.

    Holds only resolved values (Hit or Absent). Entries are never removed.
    Implementations cannot fail.
    """

    @abstractmethod
    def lookup(self, key: str) -> Optional[CacheValue]:
        """Return the cached outcome for key, or None when not cached."""
        pass

    @abstractmethod
    def record(self, key: str, value: CacheValue) -> None:
        """Insert or overwrite the cached outcome for key."""
        pass

    @abstractmethod
    def snapshot(self) -> Dict[str, CacheValue]:
        """Return a copy of all cached outcomes."""
        pass


class BlobSource(ABC):
    """Remote object storage returning encrypted payloads by key."""

    @abstractmethod
    async def fetch_object(self, bucket: str, key: str) -> bytes:
        """
        Fetch the raw encrypted bytes stored under key.

        Raises:
            BlobSourceError: carrying the service error code on failure
        """
        pass


class KeyService(ABC):
    """Remote service performing authenticated decryption."""

    @abstractmethod
    async def decrypt(
        self, ciphertext: bytes, encryption_context: Mapping[str, str]
    ) -> Optional[bytes]:
        """
        Decrypt ciphertext bound to encryption_context.

        Returns:
            Plaintext, or None/empty when the service yields no plaintext

        Raises:
            KeyServiceError: on any decrypt failure
        """
        pass
