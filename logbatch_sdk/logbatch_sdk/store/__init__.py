"""
Buffer store interface and implementations.

A BufferStore owns every SessionBuffer of its mode. Callers get stats
snapshots and immutable batches, never a live buffer.
"""

from abc import ABC, abstractmethod
from typing import Tuple

from ..config import StorageMode
from ..policy import BufferStats
from ..record import LogRecord


class BufferStore(ABC):
    """
    Abstract base class for session buffer stores.
    """

    mode: StorageMode

    @abstractmethod
    def append(self, key: str, record: LogRecord) -> BufferStats:
        """
        Append a record to the buffer of key, creating it if needed.

        Returns:
            Buffer statistics right after the append
        """
        pass

    @abstractmethod
    def snapshot_and_clear(self, key: str) -> Tuple[LogRecord, ...]:
        """
        Atomically take every buffered record of key and empty the buffer.

        Returns:
            The records in arrival order (empty if nothing was buffered)
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove any persisted state for key once it has been drained."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check whether the store holds a buffer for key."""
        pass

    @abstractmethod
    def peek_stats(self, key: str) -> BufferStats:
        """Statistics of the buffer of key without mutating it."""
        pass


from .volatile import VolatileBufferStore  # noqa: E402
from .durable import DurableBufferStore  # noqa: E402

__all__ = ["BufferStore", "VolatileBufferStore", "DurableBufferStore"]
