"""
Queue message codec.

Two body formats are understood:

Pipe-delimited (what the producer library sends):
    {dd-mm-YYYY HH:MM:SS}|{session id}|{message}|{flush count}|{flush after, minutes}

    The message may itself contain "|": the first two and last two fields
    are positional, everything in between is the message.

JSON:
    {"session_id": ..., "message": ..., "level": ..., "timestamp": ...,
     "configuration": {"flush_count": ..., "flush_after": ..., ...}}
"""

import json
import re
from dataclasses import replace
from datetime import timedelta
from typing import Any, Dict, Optional

from .config import LoggerConfiguration, parse_duration
from .errors import InvalidRecord
from .ingest import IngestRequest
from .record import LogLevel, LogRecord

SEPARATOR = "|"
TIMESTAMP_FORMAT = "%d-%m-%Y %H:%M:%S"

# Level code as rendered by handler.format_line: "\tINFO\t"
_LEVEL_RE = re.compile(r"\t(TRCE|DBUG|INFO|WARN|FAIL|CRIT)\t")

_SESSION_KEYS = ("session_id", "sessionId", "SessionId", "SessionID")


def decode_message(
    body: str,
    defaults: Optional[LoggerConfiguration] = None,
) -> IngestRequest:
    """
    Decode a queue message body into an IngestRequest.

    Args:
        body: Raw message body
        defaults: Configuration the message's thresholds are applied on top of
            (storage mode, sink target, ...)

    Raises:
        InvalidRecord: If the body matches neither format
    """
    if body is None:
        raise InvalidRecord("body", body, "empty message")
    text = body.strip()
    if not text:
        raise InvalidRecord("body", body, "empty message")
    if text.startswith("{"):
        return _decode_json(text, defaults or LoggerConfiguration())
    return _decode_pipe(body, defaults or LoggerConfiguration())


def encode_message(record: LogRecord, session_id: str, configuration: LoggerConfiguration) -> str:
    """Encode a record in the pipe-delimited producer format."""
    minutes = int(configuration.flush_after.total_seconds() // 60)
    return SEPARATOR.join([
        record.timestamp.strftime(TIMESTAMP_FORMAT),
        session_id,
        record.message,
        str(configuration.flush_count),
        str(minutes),
    ])


def encode_json(record: LogRecord, session_id: str, configuration: LoggerConfiguration) -> str:
    """Encode a record as a JSON message body."""
    data = record.to_dict()
    data["session_id"] = session_id
    data["configuration"] = configuration.to_dict()
    return json.dumps(data)


def sniff_level(message: str) -> LogLevel:
    """Recover the level from a rendered log line, defaulting to INFORMATION."""
    match = _LEVEL_RE.search(message or "")
    if match is None:
        return LogLevel.INFORMATION
    return LogLevel.parse(match.group(1))


def _decode_pipe(body: str, defaults: LoggerConfiguration) -> IngestRequest:
    parts = body.split(SEPARATOR)
    if len(parts) < 5:
        raise InvalidRecord("body", body, f"expected 5 '{SEPARATOR}'-separated fields")

    timestamp, session_id = parts[0].strip(), parts[1].strip()
    message = SEPARATOR.join(parts[2:-2])
    try:
        count = int(parts[-2].strip() or 0)
        minutes = float(parts[-1].strip() or 0)
    except ValueError as e:
        raise InvalidRecord("configuration", parts[-2:], "count and time must be numbers") from e

    try:
        configuration = replace(
            defaults,
            session_id=session_id,
            flush_count=count,
            flush_after=timedelta(minutes=minutes),
        )
    except ValueError as e:
        raise InvalidRecord("configuration", parts[-2:], str(e)) from e

    return IngestRequest(
        session_id=session_id,
        message=message,
        level=sniff_level(message),
        timestamp=timestamp,
        configuration=configuration,
    )


def _decode_json(text: str, defaults: LoggerConfiguration) -> IngestRequest:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise InvalidRecord("body", text[:200], f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidRecord("body", text[:200], "expected a JSON object")

    session_id = next((data[k] for k in _SESSION_KEYS if data.get(k)), None)
    configuration = apply_overrides(defaults, data.get("configuration") or {})
    return IngestRequest(
        session_id=session_id,
        message=data.get("message"),
        level=data.get("level"),
        timestamp=data.get("timestamp"),
        configuration=configuration,
    )


def apply_overrides(defaults: LoggerConfiguration, overrides: Dict[str, Any]) -> LoggerConfiguration:
    """
    Apply the threshold fields of a configuration mapping on top of defaults.

    Accepts "flush_count"/"count" and "flush_after" (seconds or "5m") or
    "time" (minutes). Other fields are taken as-is when present.
    """
    if not isinstance(overrides, dict):
        raise InvalidRecord("configuration", overrides, "expected an object")

    normalized = _normalize_keys(overrides)
    try:
        return LoggerConfiguration.from_dict({**defaults.to_dict(), **normalized})
    except (TypeError, ValueError) as e:
        raise InvalidRecord("configuration", overrides, str(e)) from e


def _normalize_keys(overrides: Dict[str, Any]) -> Dict[str, Any]:
    normalized = {k: v for k, v in overrides.items() if v is not None}
    try:
        if "count" in normalized and "flush_count" not in normalized:
            normalized["flush_count"] = int(normalized.pop("count"))
        if "time" in normalized and "flush_after" not in normalized:
            normalized["flush_after"] = timedelta(minutes=float(normalized.pop("time")))
        if "flush_after" in normalized:
            normalized["flush_after"] = parse_duration(normalized["flush_after"])
    except (TypeError, ValueError) as e:
        raise InvalidRecord("configuration", overrides, str(e)) from e
    return normalized
