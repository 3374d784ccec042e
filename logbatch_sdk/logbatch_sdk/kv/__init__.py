"""
Durable key-value store interfaces and implementations.

The durable buffer store treats values as opaque strings: one serialized
session buffer per session key.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """
    Abstract base class for durable key-value stores.

    Implementations raise their client's own errors on failure; the durable
    buffer store translates them into StorageUnavailable.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under key.

        Returns:
            The stored value, or None if the key is absent
        """
        pass

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error."""
        pass


from .memory import MemoryKeyValueStore  # noqa: E402
from .local import FileKeyValueStore  # noqa: E402
from .dynamodb import DynamoDBKeyValueStore  # noqa: E402

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "DynamoDBKeyValueStore",
]
