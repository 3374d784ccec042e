"""
LogRecord - the immutable unit of buffering.

A record carries only what the pipeline needs: message text, severity and
the instant it was produced. Session keys live beside records (in the
buffer), never inside them.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from .clock import ensure_utc
from .errors import InvalidRecord


# Timestamp layouts accepted besides ISO 8601. The first one is what the
# queue producer writes; the US layouts come from producers that send
# their platform's default date rendering.
_TIMESTAMP_FORMATS = (
    "%d-%m-%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
)


class LogLevel(Enum):
    """Severity levels, with the four-letter codes used in rendered lines."""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFORMATION = "INFORMATION"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def short_code(self) -> str:
        return _SHORT_CODES[self]

    @classmethod
    def from_logging(cls, levelno: int) -> "LogLevel":
        """Map a stdlib logging level number onto the nearest LogLevel."""
        if levelno >= logging.CRITICAL:
            return cls.CRITICAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARNING
        if levelno >= logging.INFO:
            return cls.INFORMATION
        if levelno >= logging.DEBUG:
            return cls.DEBUG
        return cls.TRACE

    @classmethod
    def parse(cls, value: Union["LogLevel", str, int, None]) -> "LogLevel":
        """
        Normalize a level given as a member, a name, a short code or a
        logging level number.

        Raises:
            InvalidRecord: If the value cannot be mapped
        """
        if value is None:
            return cls.INFORMATION
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, bool):
            raise InvalidRecord("level", value)
        if isinstance(value, int):
            return cls.from_logging(value)

        text = str(value).strip().upper()
        if not text:
            return cls.INFORMATION
        if text.isdigit():
            return cls.from_logging(int(text))
        level = _ALIASES.get(text)
        if level is None:
            raise InvalidRecord("level", value, "unknown level")
        return level


_SHORT_CODES = {
    LogLevel.TRACE: "TRCE",
    LogLevel.DEBUG: "DBUG",
    LogLevel.INFORMATION: "INFO",
    LogLevel.WARNING: "WARN",
    LogLevel.ERROR: "FAIL",
    LogLevel.CRITICAL: "CRIT",
}

_ALIASES: Dict[str, LogLevel] = {level.value: level for level in LogLevel}
_ALIASES.update({code: level for level, code in _SHORT_CODES.items()})
_ALIASES.update({
    "INFO": LogLevel.INFORMATION,
    "WARN": LogLevel.WARNING,
    "ERR": LogLevel.ERROR,
    "FATAL": LogLevel.CRITICAL,
    "VERBOSE": LogLevel.TRACE,
})


def parse_timestamp(value: Union[datetime, str, int, float, None]) -> datetime:
    """
    Normalize a timestamp to an aware UTC datetime.

    Accepts datetimes, epoch seconds, ISO 8601 strings (a trailing "Z" is
    allowed) and the day-first layout written by the queue producer.

    Raises:
        InvalidRecord: If the value is missing or cannot be parsed
    """
    if value is None:
        raise InvalidRecord("timestamp", value, "missing")
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        raise InvalidRecord("timestamp", value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidRecord("timestamp", value, str(e)) from e

    text = str(value).strip()
    if not text:
        raise InvalidRecord("timestamp", value, "empty")

    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return ensure_utc(datetime.fromisoformat(iso_text))
    except ValueError:
        pass

    for fmt in _TIMESTAMP_FORMATS:
        try:
            return ensure_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue

    raise InvalidRecord("timestamp", value, "unrecognized format")


@dataclass(frozen=True)
class LogRecord:
    """A single buffered log line. Immutable once created."""

    message: str
    level: LogLevel
    timestamp: datetime

    @classmethod
    def create(
        cls,
        message: Any,
        level: Union[LogLevel, str, int, None] = None,
        timestamp: Union[datetime, str, int, float, None] = None,
    ) -> "LogRecord":
        """Build a normalized record. A missing timestamp is rejected."""
        return cls(
            message="" if message is None else str(message),
            level=LogLevel.parse(level),
            timestamp=parse_timestamp(timestamp),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "message": self.message,
            "level": self.level.value,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogRecord":
        return cls.create(
            message=data.get("message"),
            level=data.get("level"),
            timestamp=data.get("timestamp"),
        )

    def to_document(self, session_id: Optional[str] = None) -> Dict[str, Any]:
        """Render the record as a search-backend document."""
        doc = {
            "message": self.message,
            "level": self.level.value,
            "@timestamp": self.timestamp.isoformat(),
        }
        if session_id is not None:
            doc["session_id"] = session_id
        return doc
