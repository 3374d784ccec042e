"""Tests for logbatch_sdk.clock module."""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from logbatch_sdk.clock import LogClock, _create_clock_from_env, ensure_utc


class TestEnsureUtc:
    """Tests for ensure_utc()."""

    def test_naive_taken_as_utc(self):
        assert ensure_utc(datetime(2024, 1, 1)).tzinfo == timezone.utc

    def test_offset_converted(self):
        dt = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(dt) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestLogClock:
    """Tests for LogClock."""

    def test_running_clock_is_aware(self):
        clock = LogClock()
        assert not clock.is_frozen
        assert clock.now().tzinfo == timezone.utc

    def test_freeze_and_advance(self):
        clock = LogClock()
        clock.freeze(datetime(2024, 1, 1, 12, 0))

        assert clock.is_frozen
        assert clock.now() == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert clock.advance(timedelta(minutes=6)) == datetime(2024, 1, 1, 12, 6, tzinfo=timezone.utc)
        assert clock.now() == datetime(2024, 1, 1, 12, 6, tzinfo=timezone.utc)

    def test_context_manager_unfreezes(self):
        with LogClock(frozen_time=datetime(2024, 1, 1)) as clock:
            assert clock.is_frozen
        assert not clock.is_frozen

    def test_frozen_from_env(self):
        with patch.dict(os.environ, {"LOGBATCH_FROZEN_TIME": "2024-01-01T12:00:00+00:00"}):
            clock = _create_clock_from_env()
        assert clock.now() == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_bad_env_value_ignored(self):
        with patch.dict(os.environ, {"LOGBATCH_FROZEN_TIME": "noon"}):
            clock = _create_clock_from_env()
        assert not clock.is_frozen
