"""
IngestionEntrypoint - where transports hand records to the pipeline.

    transport -> ingest() -> BufferStore.append -> FlushCoordinator.on_mutation

Validation and storage errors are raised to the caller so the transport can
decide whether to redeliver. Flush outcomes never are.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from . import clock
from .config import LoggerConfiguration, StorageMode
from .coordinator import FlushCoordinator
from .errors import InvalidRecord
from .policy import EMPTY_STATS, BufferStats
from .record import LogLevel, LogRecord
from .store import BufferStore, VolatileBufferStore

logger = logging.getLogger(__name__)

ConfigurationLike = Union[LoggerConfiguration, Mapping[str, Any], None]


@dataclass(frozen=True)
class IngestRequest:
    """One raw record as delivered by a transport."""
    session_id: Optional[str]
    message: Any
    level: Union[LogLevel, str, int, None] = None
    timestamp: Union[datetime, str, int, float, None] = None
    configuration: ConfigurationLike = None


@dataclass(frozen=True)
class IngestResult:
    """
    Outcome of one ingest call.

    Attributes:
        session_id: Normalized session key
        buffered: False when the record bypassed buffering (immediate mode)
        flushed: True if this call ran a flush (or pushed the record directly)
        stats: Buffer stats right after the append
    """
    session_id: str
    buffered: bool
    flushed: bool
    stats: BufferStats = EMPTY_STATS


class IngestionEntrypoint:
    """
    Accepts records for any session and routes them through the pipeline.

    Usage:
        sink = ElasticsearchSink("http://localhost:9200")
        entrypoint = IngestionEntrypoint(
            FlushCoordinator(sink),
            [VolatileBufferStore()],
            default_configuration=LoggerConfiguration(flush_count=50),
        )
        entrypoint.ingest("session-1", "user signed in", "INFO")
    """

    def __init__(
        self,
        coordinator: FlushCoordinator,
        stores: Union[BufferStore, Iterable[BufferStore]],
        default_configuration: Optional[LoggerConfiguration] = None,
    ):
        """
        Initialize the entrypoint.

        Args:
            coordinator: Flush coordinator shared by all sessions
            stores: One store per storage mode sessions may ask for
            default_configuration: Used for sessions that never supplied one
        """
        if isinstance(stores, BufferStore):
            stores = [stores]
        self.coordinator = coordinator
        self._stores: Dict[StorageMode, BufferStore] = {s.mode: s for s in stores}
        if not self._stores:
            raise ValueError("IngestionEntrypoint needs at least one BufferStore")

        if default_configuration is None:
            mode = next(iter(self._stores))
            default_configuration = LoggerConfiguration(storage_mode=mode)
        self.default_configuration = default_configuration
        self.store_for(default_configuration.storage_mode)

        self._sessions: Dict[str, LoggerConfiguration] = {}
        # Last configuration carried by a buffered record, used by flush_all()
        self._carried: Dict[str, LoggerConfiguration] = {}
        self._sessions_lock = threading.Lock()

    # -- configuration ------------------------------------------------------

    def store_for(self, mode: StorageMode) -> BufferStore:
        store = self._stores.get(mode)
        if store is None:
            raise ValueError(f"No buffer store configured for {mode.value} mode")
        return store

    def register_session(
        self,
        session_id: str,
        configuration: ConfigurationLike = None,
    ) -> LoggerConfiguration:
        """
        Register the configuration of a session.

        The first registration wins: a session's configuration is immutable
        once it has been seen.

        Returns:
            The configuration in effect for the session
        """
        key = self._normalize_key(session_id)
        candidate = self._coerce_configuration(key, configuration) if configuration else None
        with self._sessions_lock:
            existing = self._sessions.get(key)
            if existing is not None:
                return existing
            effective = candidate or self.default_configuration.for_session(key)
            self._sessions[key] = effective
        logger.debug(f"Registered session {key}")
        return effective

    def forget_session(self, session_id: str) -> None:
        with self._sessions_lock:
            self._sessions.pop(session_id, None)
            self._carried.pop(session_id, None)

    def resolve_configuration(
        self,
        session_id: str,
        configuration: ConfigurationLike = None,
    ) -> LoggerConfiguration:
        """
        Pick the configuration for a record: the one it carries, else the
        one registered for its session, else the default.
        """
        if configuration:
            return self._coerce_configuration(session_id, configuration)
        with self._sessions_lock:
            registered = self._sessions.get(session_id)
        if registered is not None:
            return registered
        return self.default_configuration.for_session(session_id)

    # -- ingestion ----------------------------------------------------------

    def ingest(
        self,
        session_id: Optional[str],
        message: Any,
        level: Union[LogLevel, str, int, None] = None,
        timestamp: Union[datetime, str, int, float, None] = None,
        configuration: ConfigurationLike = None,
    ) -> IngestResult:
        """
        Buffer one record and flush the session if its threshold is reached.

        Raises:
            InvalidRecord: Missing session key, bad level, malformed timestamp,
                or a storage mode no store is configured for
            StorageUnavailable: The durable store could not be read or written
        """
        key = self._normalize_key(session_id)
        record = LogRecord.create(
            message,
            level,
            timestamp if timestamp is not None else clock.now(),
        )
        config = self.resolve_configuration(key, configuration)

        if config.is_immediate:
            result = self.coordinator.push_immediate(key, record, config)
            return IngestResult(key, buffered=False, flushed=result.ok)

        try:
            store = self.store_for(config.storage_mode)
        except ValueError as e:
            raise InvalidRecord("configuration", config.storage_mode.value, str(e)) from e

        if configuration and store.mode == StorageMode.VOLATILE:
            with self._sessions_lock:
                self._carried[key] = config
        stats = store.append(key, record)
        flushed = self.coordinator.on_mutation(key, stats, config, store)
        return IngestResult(key, buffered=True, flushed=flushed, stats=stats)

    def ingest_request(self, request: IngestRequest) -> IngestResult:
        return self.ingest(
            request.session_id,
            request.message,
            level=request.level,
            timestamp=request.timestamp,
            configuration=request.configuration,
        )

    def flush_all(self) -> int:
        """
        Force out every non-empty volatile buffer, e.g. before shutdown.

        Each session is flushed with the configuration its latest buffered
        record carried, falling back to the registered one.

        Returns:
            Number of sessions flushed
        """
        store = self._stores.get(StorageMode.VOLATILE)
        if not isinstance(store, VolatileBufferStore):
            return 0

        flushed = 0
        for key in store.keys():
            with self._sessions_lock:
                config = self._carried.pop(key, None)
            if self.coordinator.flush_now(key, config or self.resolve_configuration(key), store):
                flushed += 1
        if flushed:
            logger.info(f"Flushed {flushed} sessions on request")
        return flushed

    # -- internals ----------------------------------------------------------

    @staticmethod
    def _normalize_key(session_id: Optional[str]) -> str:
        key = "" if session_id is None else str(session_id).strip()
        if not key:
            raise InvalidRecord("session_id", session_id, "missing session key")
        return key

    @staticmethod
    def _coerce_configuration(key: str, configuration: ConfigurationLike) -> LoggerConfiguration:
        if isinstance(configuration, LoggerConfiguration):
            config = configuration
        else:
            try:
                config = LoggerConfiguration.from_dict(dict(configuration))
            except (TypeError, ValueError) as e:
                raise InvalidRecord("configuration", configuration, str(e)) from e
        if config.session_id != key:
            config = config.for_session(key)
        return config
