"""
SessionBuffer - ordered, append-only record collection for one session key.

All mutations happen under the buffer's own lock, so an append racing a
snapshot_and_clear lands either in the returned snapshot or in the emptied
buffer, never in both and never in neither.
"""

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .policy import BufferStats
from .record import LogRecord


class SessionBuffer:
    """
    Buffered records for one session key.

    Callers never get the live record list: reads return BufferStats or an
    immutable tuple copy.
    """

    def __init__(self, key: str, records: Optional[List[LogRecord]] = None):
        self.key = key
        self._records: List[LogRecord] = []
        self._first: Optional[datetime] = None
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()
        for record in records or ():
            self._add(record)

    def append(self, record: LogRecord) -> BufferStats:
        """Append one record and return the stats right after the append."""
        with self._lock:
            self._add(record)
            return self._stats()

    def snapshot_and_clear(self) -> Tuple[LogRecord, ...]:
        """Atomically return all buffered records and empty the buffer."""
        with self._lock:
            batch = tuple(self._records)
            self._records = []
            self._first = None
            self._last = None
            return batch

    def peek_stats(self) -> BufferStats:
        with self._lock:
            return self._stats()

    def records(self) -> Tuple[LogRecord, ...]:
        """Immutable copy of the buffered records, in arrival order."""
        with self._lock:
            return tuple(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # -- serialized form (durable mode) -------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        with self._lock:
            return {
                "key": self.key,
                "records": [r.to_dict() for r in self._records],
                "first_timestamp": self._first.isoformat() if self._first else None,
                "last_timestamp": self._last.isoformat() if self._last else None,
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], key: Optional[str] = None) -> "SessionBuffer":
        """
        Rebuild a buffer from its serialized form.

        Statistics are recomputed from the records, the stored timestamps
        are informational only.
        """
        return cls(
            key or data.get("key", ""),
            [LogRecord.from_dict(r) for r in data.get("records", [])],
        )

    # -- internals ----------------------------------------------------------

    def _add(self, record: LogRecord) -> None:
        self._records.append(record)
        self._widen(record.timestamp)

    def _widen(self, ts: datetime) -> None:
        if self._first is None or ts < self._first:
            self._first = ts
        if self._last is None or ts > self._last:
            self._last = ts

    def _stats(self) -> BufferStats:
        return BufferStats(
            count=len(self._records),
            first_timestamp=self._first,
            last_timestamp=self._last,
        )
