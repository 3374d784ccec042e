"""
Configuration for the batching pipeline.

Two layers:
    LoggerConfiguration: per-session thresholds and routing, immutable once
        a session starts.
    PipelineConfig: process-wide settings (sink endpoint, durable store,
        default thresholds) loaded from logbatch.yaml.
"""

import json
import os
import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .clock import ensure_utc
from .record import parse_timestamp


DEFAULT_SINK_TARGET = "logs"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$", re.IGNORECASE)
_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}


class StorageMode(Enum):
    """Where session buffers live between appends."""
    VOLATILE = "volatile"
    DURABLE = "durable"


class FlushBasis(Enum):
    """Reference point for time-based flushing."""
    FIRST_RECORD = "first_record"
    SESSION_START = "session_start"


def parse_duration(value: Union[timedelta, int, float, str, None]) -> timedelta:
    """
    Parse a duration given as a timedelta, a number of seconds or a string
    such as "30s", "5m", "1h". None and 0 mean disabled.
    """
    if value is None:
        return timedelta(0)
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)

    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=float(amount) * _DURATION_UNITS[(unit or "s").lower()])


@dataclass(frozen=True)
class LoggerConfiguration:
    """
    Per-session buffering configuration.

    Attributes:
        session_id: Session or registration identifier the configuration belongs to
        flush_count: Flush when exactly this many records are buffered (0 = disabled)
        flush_after: Flush once this much time has elapsed (0 = disabled)
        sink_target: Index the session's batches are written to
        storage_mode: Volatile (process memory) or durable (key-value store)
        flush_basis: What flush_after is measured from
        session_started_at: Session start, used with FlushBasis.SESSION_START
    """
    session_id: str = ""
    flush_count: int = 0
    flush_after: timedelta = timedelta(0)
    sink_target: str = DEFAULT_SINK_TARGET
    storage_mode: StorageMode = StorageMode.VOLATILE
    flush_basis: FlushBasis = FlushBasis.FIRST_RECORD
    session_started_at: Optional[datetime] = None

    def __post_init__(self):
        if self.flush_count < 0:
            raise ValueError(f"flush_count must be >= 0, got {self.flush_count}")
        if self.flush_after < timedelta(0):
            raise ValueError(f"flush_after must be >= 0, got {self.flush_after}")
        if self.session_started_at is not None:
            object.__setattr__(self, "session_started_at", ensure_utc(self.session_started_at))

    @property
    def is_immediate(self) -> bool:
        """True when neither threshold is set: records bypass buffering."""
        return self.flush_count == 0 and self.flush_after == timedelta(0)

    def for_session(self, session_id: str) -> "LoggerConfiguration":
        """Copy of this configuration bound to another session."""
        return replace(self, session_id=session_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggerConfiguration":
        """
        Build from a mapping. Accepts snake_case keys as well as the
        producer's short keys ("count", "time" in minutes, "unique_id").
        """
        flush_after = data.get("flush_after")
        if flush_after is None and data.get("time") is not None:
            flush_after = timedelta(minutes=float(data["time"]))

        started = data.get("session_started_at")
        return cls(
            session_id=str(data.get("session_id") or data.get("unique_id") or ""),
            flush_count=int(data.get("flush_count", data.get("count", 0)) or 0),
            flush_after=parse_duration(flush_after),
            sink_target=data.get("sink_target") or DEFAULT_SINK_TARGET,
            storage_mode=StorageMode(data.get("storage_mode") or StorageMode.VOLATILE.value),
            flush_basis=FlushBasis(data.get("flush_basis") or FlushBasis.FIRST_RECORD.value),
            session_started_at=parse_timestamp(started) if started is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "flush_count": self.flush_count,
            "flush_after": self.flush_after.total_seconds(),
            "sink_target": self.sink_target,
            "storage_mode": self.storage_mode.value,
            "flush_basis": self.flush_basis.value,
            "session_started_at": (
                self.session_started_at.isoformat() if self.session_started_at else None
            ),
        }


class PipelineConfig:
    """Process-wide configuration loaded from logbatch.yaml."""

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        self._config = config_dict or {}

    @property
    def storage_mode(self) -> StorageMode:
        """Storage mode used for sessions that do not carry their own."""
        return StorageMode(self._config.get("storage_mode", StorageMode.VOLATILE.value))

    @property
    def sink_config(self) -> Dict[str, Any]:
        """Sink-specific configuration (type, url, index, lifecycle_policy, ...)"""
        return self._config.get("sink", {}) or {}

    @property
    def sink_type(self) -> str:
        return self.sink_config.get("type", "elasticsearch")

    @property
    def store_config(self) -> Dict[str, Any]:
        """Durable key-value store configuration (type, table, region, directory)"""
        return self._config.get("store", {}) or {}

    @property
    def flush_config(self) -> Dict[str, Any]:
        return self._config.get("flush", {}) or {}

    def default_logger_configuration(self, session_id: str = "") -> LoggerConfiguration:
        """LoggerConfiguration for sessions that did not supply one."""
        flush = self.flush_config
        return LoggerConfiguration(
            session_id=session_id,
            flush_count=int(flush.get("count", 0) or 0),
            flush_after=parse_duration(flush.get("after")),
            sink_target=self.sink_config.get("index", DEFAULT_SINK_TARGET),
            storage_mode=self.storage_mode,
            flush_basis=FlushBasis(flush.get("basis", FlushBasis.FIRST_RECORD.value)),
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._config)


# Environment variable -> (section, key); section None means top level.
_ENV_OVERRIDES = {
    "LOGBATCH_STORAGE_MODE": (None, "storage_mode"),
    "LOGBATCH_SINK_URL": ("sink", "url"),
    "LOGBATCH_SINK_INDEX": ("sink", "index"),
    "LOGBATCH_FLUSH_COUNT": ("flush", "count"),
    "LOGBATCH_FLUSH_AFTER": ("flush", "after"),
    "LOGBATCH_TABLE": ("store", "table"),
}


def load_config(config_path: Optional[str] = None) -> PipelineConfig:
    """
    Load configuration from logbatch.yaml and apply environment overrides.

    Search order:
    1. Provided config_path
    2. LOGBATCH_CONFIG environment variable
    3. ./logbatch.yaml in current directory
    4. logbatch.yaml in parent directories (walk up the tree)

    If no file is found an empty configuration is used, so environment
    overrides alone are enough to configure a deployment.

    Raises:
        FileNotFoundError: If an explicit path does not exist
    """
    path = config_path or os.environ.get("LOGBATCH_CONFIG")
    if path:
        config_dict = _load_from_path(path)
    else:
        config_dict = {}
        current = Path.cwd()
        while True:
            config_file = current / "logbatch.yaml"
            if config_file.exists():
                config_dict = _load_from_path(str(config_file))
                break
            if current == current.parent:
                break
            current = current.parent

    return PipelineConfig(_apply_env_overrides(config_dict))


def _load_from_path(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        if path.endswith(".json"):
            return json.load(f) or {}
        return yaml.safe_load(f) or {}


def _apply_env_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(config_dict)
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        if section is None:
            merged[key] = value
        else:
            merged[section] = {**(merged.get(section) or {}), key: value}
    return merged
