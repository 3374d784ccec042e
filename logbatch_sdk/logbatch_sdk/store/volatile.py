"""
Process-local buffer store for long-lived processes.
"""

import logging
import threading
from typing import Dict, List, Tuple

from ..buffer import SessionBuffer
from ..config import StorageMode
from ..policy import EMPTY_STATS, BufferStats
from ..record import LogRecord
from . import BufferStore

logger = logging.getLogger(__name__)


class VolatileBufferStore(BufferStore):
    """
    Keeps one SessionBuffer per key for the lifetime of the process.

    Drained buffers stay in the map and are reused by later appends, so the
    map lock is only taken to create a buffer; appends and clears use the
    buffer's own lock.
    """

    mode = StorageMode.VOLATILE

    def __init__(self):
        self._buffers: Dict[str, SessionBuffer] = {}
        self._lock = threading.Lock()

    def _buffer_for(self, key: str) -> SessionBuffer:
        buffer = self._buffers.get(key)
        if buffer is None:
            with self._lock:
                buffer = self._buffers.get(key)
                if buffer is None:
                    buffer = SessionBuffer(key)
                    self._buffers[key] = buffer
                    logger.debug(f"Created buffer for session {key}")
        return buffer

    def append(self, key: str, record: LogRecord) -> BufferStats:
        return self._buffer_for(key).append(record)

    def snapshot_and_clear(self, key: str) -> Tuple[LogRecord, ...]:
        buffer = self._buffers.get(key)
        if buffer is None:
            return ()
        return buffer.snapshot_and_clear()

    def delete(self, key: str) -> None:
        """No-op: volatile buffers are emptied, never removed."""

    def exists(self, key: str) -> bool:
        return key in self._buffers

    def peek_stats(self, key: str) -> BufferStats:
        buffer = self._buffers.get(key)
        if buffer is None:
            return EMPTY_STATS
        return buffer.peek_stats()

    def keys(self) -> List[str]:
        """Session keys that currently hold at least one record."""
        with self._lock:
            buffers = list(self._buffers.values())
        return [b.key for b in buffers if len(b)]
