"""
Flush policy - decides when a session buffer is handed to the sink.

Pure functions over a BufferStats snapshot and a LoggerConfiguration. The
policy must be evaluated after every single append: the count threshold is
an exact match, so batching evaluations could step over it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from . import clock
from .config import FlushBasis, LoggerConfiguration


@dataclass(frozen=True)
class BufferStats:
    """Read-only statistics of one session buffer at a point in time."""
    count: int = 0
    first_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return self.count == 0


EMPTY_STATS = BufferStats()


def should_flush(
    stats: BufferStats,
    config: LoggerConfiguration,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether the buffer described by stats should be flushed.

    Args:
        stats: Snapshot of the buffer
        config: Session configuration
        now: Evaluation time. Defaults to the package clock.

    Returns:
        True if the buffer should be flushed now
    """
    if stats.is_empty:
        return False

    if config.flush_count > 0:
        return stats.count == config.flush_count

    if config.flush_after > timedelta(0):
        reference = _time_reference(stats, config)
        if reference is None:
            return False
        current = now if now is not None else clock.now()
        return current - reference >= config.flush_after

    return False


def is_overdue(stats: BufferStats, config: LoggerConfiguration) -> bool:
    """
    True if the count threshold has been reached or passed.

    Used when a flush had to be skipped while another one was in flight:
    by the time it is retried the buffer may already hold more records
    than flush_count.
    """
    return config.flush_count > 0 and stats.count >= config.flush_count


def _time_reference(stats: BufferStats, config: LoggerConfiguration) -> Optional[datetime]:
    if config.flush_basis == FlushBasis.SESSION_START and config.session_started_at is not None:
        return config.session_started_at
    return stats.first_timestamp
