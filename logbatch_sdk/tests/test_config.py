"""Tests for logbatch_sdk.config module."""

import json
import os
from datetime import timedelta, timezone, datetime

import pytest

from logbatch_sdk.config import (
    FlushBasis,
    LoggerConfiguration,
    PipelineConfig,
    StorageMode,
    load_config,
    parse_duration,
)


class TestParseDuration:
    """Tests for parse_duration()."""

    @pytest.mark.parametrize("value,expected", [
        (None, timedelta(0)),
        (0, timedelta(0)),
        (90, timedelta(seconds=90)),
        (1.5, timedelta(seconds=1.5)),
        ("30s", timedelta(seconds=30)),
        ("5m", timedelta(minutes=5)),
        ("1h", timedelta(hours=1)),
        ("250ms", timedelta(milliseconds=250)),
        ("2d", timedelta(days=2)),
        ("45", timedelta(seconds=45)),
        (timedelta(minutes=3), timedelta(minutes=3)),
    ])
    def test_accepted_forms(self, value, expected):
        assert parse_duration(value) == expected

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            parse_duration("soon")


class TestLoggerConfiguration:
    """Tests for LoggerConfiguration."""

    def test_defaults_are_immediate(self):
        config = LoggerConfiguration()
        assert config.is_immediate
        assert config.storage_mode == StorageMode.VOLATILE
        assert config.flush_basis == FlushBasis.FIRST_RECORD

    def test_any_threshold_disables_immediate(self):
        assert not LoggerConfiguration(flush_count=1).is_immediate
        assert not LoggerConfiguration(flush_after=timedelta(seconds=1)).is_immediate

    def test_negative_thresholds_rejected(self):
        with pytest.raises(ValueError):
            LoggerConfiguration(flush_count=-1)
        with pytest.raises(ValueError):
            LoggerConfiguration(flush_after=timedelta(seconds=-1))

    def test_for_session_copies(self):
        config = LoggerConfiguration(flush_count=3)
        bound = config.for_session("s-1")
        assert bound.session_id == "s-1"
        assert bound.flush_count == 3
        assert config.session_id == ""

    def test_from_dict_accepts_producer_keys(self):
        config = LoggerConfiguration.from_dict({"unique_id": "s-9", "count": "4", "time": 2})
        assert config.session_id == "s-9"
        assert config.flush_count == 4
        assert config.flush_after == timedelta(minutes=2)

    def test_from_dict_full_form(self):
        config = LoggerConfiguration.from_dict({
            "session_id": "s-1",
            "flush_count": 0,
            "flush_after": "5m",
            "sink_target": "app-{session_id}",
            "storage_mode": "durable",
            "flush_basis": "session_start",
            "session_started_at": "2024-01-01T12:00:00Z",
        })
        assert config.flush_after == timedelta(minutes=5)
        assert config.sink_target == "app-{session_id}"
        assert config.storage_mode == StorageMode.DURABLE
        assert config.flush_basis == FlushBasis.SESSION_START
        assert config.session_started_at == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_from_dict_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            LoggerConfiguration.from_dict({"storage_mode": "cloud"})

    def test_to_dict_uses_seconds(self):
        data = LoggerConfiguration(flush_after=timedelta(minutes=1)).to_dict()
        assert data["flush_after"] == 60.0
        assert data["storage_mode"] == "volatile"


class TestPipelineConfig:
    """Tests for PipelineConfig."""

    def test_empty_config_defaults(self):
        config = PipelineConfig()
        assert config.storage_mode == StorageMode.VOLATILE
        assert config.sink_type == "elasticsearch"
        assert config.store_config == {}

    def test_default_logger_configuration(self):
        config = PipelineConfig({
            "storage_mode": "durable",
            "sink": {"index": "app-logs"},
            "flush": {"count": 25, "after": "10m", "basis": "session_start"},
        })
        logger_config = config.default_logger_configuration("s-1")
        assert logger_config.session_id == "s-1"
        assert logger_config.flush_count == 25
        assert logger_config.flush_after == timedelta(minutes=10)
        assert logger_config.sink_target == "app-logs"
        assert logger_config.storage_mode == StorageMode.DURABLE
        assert logger_config.flush_basis == FlushBasis.SESSION_START


class TestLoadConfig:
    """Tests for load_config()."""

    def test_explicit_yaml_path(self, temp_dir):
        path = temp_dir / "custom.yaml"
        path.write_text("storage_mode: durable\nflush:\n  count: 7\n")

        config = load_config(str(path))
        assert config.storage_mode == StorageMode.DURABLE
        assert config.flush_config["count"] == 7

    def test_json_path(self, temp_dir):
        path = temp_dir / "logbatch.json"
        path.write_text(json.dumps({"sink": {"type": "memory"}}))

        assert load_config(str(path)).sink_type == "memory"

    def test_env_path(self, temp_dir):
        path = temp_dir / "env.yaml"
        path.write_text("sink:\n  index: from-env-file\n")
        os.environ["LOGBATCH_CONFIG"] = str(path)

        assert load_config().sink_config["index"] == "from-env-file"

    def test_walks_up_to_parent(self, temp_dir, monkeypatch):
        (temp_dir / "logbatch.yaml").write_text("flush:\n  after: 30s\n")
        nested = temp_dir / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        os.environ.pop("LOGBATCH_CONFIG", None)

        config = load_config()
        assert config.default_logger_configuration().flush_after == timedelta(seconds=30)

    def test_missing_explicit_path_raises(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            load_config(str(temp_dir / "nope.yaml"))

    def test_env_overrides_file(self, temp_dir):
        path = temp_dir / "logbatch.yaml"
        path.write_text("sink:\n  url: http://file:9200\n  index: logs\nflush:\n  count: 5\n")
        os.environ["LOGBATCH_SINK_URL"] = "http://env:9200"
        os.environ["LOGBATCH_FLUSH_COUNT"] = "50"
        os.environ["LOGBATCH_STORAGE_MODE"] = "durable"

        config = load_config(str(path))
        assert config.sink_config == {"url": "http://env:9200", "index": "logs"}
        assert config.default_logger_configuration().flush_count == 50
        assert config.storage_mode == StorageMode.DURABLE
