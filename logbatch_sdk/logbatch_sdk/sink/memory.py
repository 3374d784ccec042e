"""
In-memory sink for tests and local development.
"""

import threading
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..errors import SinkPushFailed
from ..record import LogRecord
from . import BulkSink


@dataclass(frozen=True)
class PushedBatch:
    target: str
    routing_key: str
    records: Tuple[LogRecord, ...]

    @property
    def messages(self) -> List[str]:
        return [r.message for r in self.records]


class MemorySink(BulkSink):
    """
    Keeps every pushed batch in a list.

    Set fail=True (or pass fail_with) to simulate a rejected bulk write.
    """

    def __init__(self, fail: bool = False, fail_with: str = "simulated failure"):
        self.fail = fail
        self.fail_with = fail_with
        self.batches: List[PushedBatch] = []
        self.attempts = 0
        self._lock = threading.Lock()

    def _push_batch(self, batch: Sequence[LogRecord], target: str, routing_key: str) -> None:
        with self._lock:
            self.attempts += 1
            if self.fail:
                raise SinkPushFailed(target, len(batch), self.fail_with)
            self.batches.append(PushedBatch(target, routing_key, tuple(batch)))

    def batches_for(self, routing_key: str) -> List[PushedBatch]:
        with self._lock:
            return [b for b in self.batches if b.routing_key == routing_key]
