"""Tests for logbatch_sdk.wire module."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from logbatch_sdk.config import LoggerConfiguration, StorageMode
from logbatch_sdk.errors import InvalidRecord
from logbatch_sdk.record import LogLevel, LogRecord
from logbatch_sdk.wire import apply_overrides, decode_message, encode_message, sniff_level


DURABLE_DEFAULTS = LoggerConfiguration(storage_mode=StorageMode.DURABLE, sink_target="queue-logs")


class TestDecodePipe:
    """Pipe-delimited producer format."""

    def test_fields(self):
        request = decode_message("01-02-2024 10:30:00|s-1|user signed in|20|5", DURABLE_DEFAULTS)

        assert request.session_id == "s-1"
        assert request.message == "user signed in"
        assert request.timestamp == "01-02-2024 10:30:00"
        assert request.level is LogLevel.INFORMATION
        assert request.configuration.flush_count == 20
        assert request.configuration.flush_after == timedelta(minutes=5)

    def test_defaults_carried_over(self):
        request = decode_message("01-02-2024 10:30:00|s-1|m|3|0", DURABLE_DEFAULTS)

        assert request.configuration.storage_mode == StorageMode.DURABLE
        assert request.configuration.sink_target == "queue-logs"
        assert request.configuration.session_id == "s-1"

    def test_message_may_contain_separator(self):
        request = decode_message("01-02-2024 10:30:00|s-1|a|b|c|3|1")
        assert request.message == "a|b|c"

    def test_level_recovered_from_rendered_line(self):
        line = "\t[4]\t01-02-2024 10:30:00\tFAIL\t[0]\t\t[Session ID: s-1]\t\t[Message: boom]\t"
        request = decode_message(f"01-02-2024 10:30:00|s-1|{line}|3|0")
        assert request.level is LogLevel.ERROR

    def test_too_few_fields(self):
        with pytest.raises(InvalidRecord) as exc_info:
            decode_message("01-02-2024 10:30:00|s-1|m")
        assert exc_info.value.field == "body"

    def test_non_numeric_thresholds(self):
        with pytest.raises(InvalidRecord) as exc_info:
            decode_message("01-02-2024 10:30:00|s-1|m|lots|0")
        assert exc_info.value.field == "configuration"

    def test_negative_threshold(self):
        with pytest.raises(InvalidRecord):
            decode_message("01-02-2024 10:30:00|s-1|m|-1|0")

    @pytest.mark.parametrize("body", [None, "", "   "])
    def test_empty_body(self, body):
        with pytest.raises(InvalidRecord):
            decode_message(body)


class TestDecodeJson:
    """JSON message format."""

    def test_fields(self):
        body = json.dumps({
            "sessionId": "s-1",
            "message": "hello",
            "level": "WARN",
            "timestamp": "2024-01-01T12:00:00Z",
            "configuration": {"count": 4, "time": 2},
        })
        request = decode_message(body, DURABLE_DEFAULTS)

        assert request.session_id == "s-1"
        assert request.level == "WARN"
        assert request.configuration.flush_count == 4
        assert request.configuration.flush_after == timedelta(minutes=2)
        assert request.configuration.storage_mode == StorageMode.DURABLE

    def test_configuration_optional(self):
        request = decode_message('{"session_id": "s-1", "message": "m"}', DURABLE_DEFAULTS)
        assert request.configuration.sink_target == "queue-logs"

    def test_invalid_json(self):
        with pytest.raises(InvalidRecord):
            decode_message('{"session_id": ')

    def test_json_array_is_not_a_message(self):
        with pytest.raises(InvalidRecord):
            decode_message("[1, 2]")


class TestApplyOverrides:
    """Tests for apply_overrides()."""

    def test_flush_after_string(self):
        config = apply_overrides(LoggerConfiguration(), {"flush_after": "90s"})
        assert config.flush_after == timedelta(seconds=90)

    def test_none_values_ignored(self):
        config = apply_overrides(LoggerConfiguration(flush_count=5), {"flush_count": None})
        assert config.flush_count == 5

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidRecord):
            apply_overrides(LoggerConfiguration(), ["count", 3])


class TestEncode:
    """Tests for encode_message() and sniff_level()."""

    def test_encode_pipe_format(self):
        record = LogRecord.create("hello", "INFO", datetime(2024, 2, 1, 10, 30, tzinfo=timezone.utc))
        config = LoggerConfiguration(flush_count=20, flush_after=timedelta(minutes=5))

        assert encode_message(record, "s-1", config) == "01-02-2024 10:30:00|s-1|hello|20|5"

    def test_sniff_level_default(self):
        assert sniff_level("no level here") is LogLevel.INFORMATION
        assert sniff_level("\tCRIT\t") is LogLevel.CRITICAL
