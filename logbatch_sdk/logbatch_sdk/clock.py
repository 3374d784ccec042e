"""
LogClock - Freezable UTC clock for flush-policy evaluation.

Time-based flushing compares "now" against buffered timestamps. Routing all
reads of the current time through one clock makes that comparison testable.

Usage:
    from logbatch_sdk.clock import log_clock

    now = log_clock.now()

    # Freeze and move time in tests
    log_clock.freeze(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
    log_clock.advance(timedelta(minutes=6))
    log_clock.unfreeze()
"""

import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_utc(dt: datetime) -> datetime:
    """Return dt as an aware UTC datetime. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class LogClock:
    """
    A UTC clock that can be frozen and advanced.

    Always returns timezone-aware datetimes.
    """

    def __init__(self, frozen_time: Optional[datetime] = None):
        self._frozen_time: Optional[datetime] = (
            ensure_utc(frozen_time) if frozen_time is not None else None
        )
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Get the current UTC time (frozen or real)."""
        with self._lock:
            if self._frozen_time is not None:
                return self._frozen_time
        return datetime.now(timezone.utc)

    def freeze(self, dt: datetime) -> None:
        """Freeze the clock at a specific time."""
        with self._lock:
            self._frozen_time = ensure_utc(dt)

    def advance(self, delta: timedelta) -> datetime:
        """
        Move a frozen clock forward.

        Freezes the clock at the real current time first if it was running.

        Returns:
            The new frozen time
        """
        with self._lock:
            base = self._frozen_time or datetime.now(timezone.utc)
            self._frozen_time = base + delta
            return self._frozen_time

    def unfreeze(self) -> None:
        """Unfreeze the clock to return real time."""
        with self._lock:
            self._frozen_time = None

    @property
    def is_frozen(self) -> bool:
        with self._lock:
            return self._frozen_time is not None

    def __enter__(self) -> "LogClock":
        return self

    def __exit__(self, *args) -> None:
        self.unfreeze()


def _create_clock_from_env() -> LogClock:
    """Create a LogClock, frozen if LOGBATCH_FROZEN_TIME is set (ISO 8601)."""
    frozen_time_str = os.environ.get("LOGBATCH_FROZEN_TIME")
    if frozen_time_str:
        try:
            return LogClock(frozen_time=datetime.fromisoformat(frozen_time_str))
        except ValueError:
            pass
    return LogClock()


# Global instance
log_clock = _create_clock_from_env()


def now() -> datetime:
    """Get current UTC time from the global LogClock."""
    return log_clock.now()
