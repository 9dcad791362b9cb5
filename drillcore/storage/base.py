"""
Key-value persistence contract used by the card store.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional


class KeyValueStore(ABC):
    """
    Abstract key-value store holding serialized blobs.

    Implementations raise on failure; callers decide whether a failure is
    fatal.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """
        Return the blob stored under ``key``, or None if nothing is stored.

        Raises:
            StorageError: If the backing store cannot be read.
        """
        pass

    @abstractmethod
    def save(self, key: str, blob: str) -> Optional[bool]:
        """
        Store ``blob`` under ``key``, replacing any previous value.

        Returns:
            None or True on success. Stores that cannot raise may return
            False to report a failed write.

        Raises:
            StorageError: If the backing store cannot be written.
        """
        pass

    def close(self) -> None:
        """Release any resources held by the store."""
        return None


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store; useful for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def save(self, key: str, blob: str) -> None:
        self._data[key] = blob
