"""
Bulk sink interfaces and implementations.

A sink delivers one batch per call and never retries: a failed batch is
reported and abandoned.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from ..errors import SinkPushFailed
from ..record import LogRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushResult:
    """Outcome of one bulk push."""
    ok: bool
    count: int = 0
    target: str = ""
    error: Optional[str] = None


class BulkSink(ABC):
    """
    Abstract base class for bulk sinks.

    Subclasses implement _push_batch() and raise SinkPushFailed (or let
    their client's error escape) when the backend rejects the batch.
    """

    def push(self, batch: Sequence[LogRecord], target: str, routing_key: str) -> PushResult:
        """
        Push a batch as one bulk operation.

        Args:
            batch: Records in arrival order
            target: Index or table the batch is written to
            routing_key: Session key used to co-locate the session's records

        Returns:
            PushResult describing success or failure. Never raises.
        """
        if not batch:
            return PushResult(ok=True, count=0, target=target)

        resolved = self.resolve_target(target, routing_key)
        try:
            self._push_batch(batch, resolved, routing_key)
        except SinkPushFailed as e:
            return PushResult(ok=False, count=len(batch), target=resolved, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error pushing batch for session {routing_key}")
            return PushResult(ok=False, count=len(batch), target=resolved, error=repr(e))

        logger.debug(f"Pushed {len(batch)} records for session {routing_key} to {resolved}")
        return PushResult(ok=True, count=len(batch), target=resolved)

    @staticmethod
    def resolve_target(target: str, routing_key: str) -> str:
        """Expand a "{session_id}" placeholder in the target name."""
        if "{session_id}" in target:
            return target.replace("{session_id}", routing_key).lower()
        return target

    @abstractmethod
    def _push_batch(self, batch: Sequence[LogRecord], target: str, routing_key: str) -> None:
        """Write a batch to the backend, raising on failure."""

    def close(self) -> None:
        """Release any resources held by the sink."""

    def __enter__(self) -> "BulkSink":
        return self

    def __exit__(self, *args) -> None:
        self.close()


from .memory import MemorySink  # noqa: E402
from .elasticsearch import ElasticsearchSink  # noqa: E402

__all__ = ["BulkSink", "PushResult", "MemorySink", "ElasticsearchSink"]
