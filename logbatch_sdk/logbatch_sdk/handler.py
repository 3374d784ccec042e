"""
Producer side: a logging.Handler that feeds the batching pipeline.

    logger.info(...) -> SessionLogHandler -> IngestionEntrypoint.ingest

The session a record belongs to is looked up when the record is emitted,
by default from the session context (see context.py). Records emitted
outside any session are skipped.
"""

import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from .config import LoggerConfiguration
from .context import get_session_id
from .ingest import IngestionEntrypoint
from .record import LogLevel

NOT_ESTABLISHED = "Not established"
LINE_TIMESTAMP_FORMAT = "%d-%m-%Y %H:%M:%S"

# Records from the pipeline itself are never fed back into it
_OWN_LOGGER = __name__.split(".")[0]


def _is_own_logger(name: str) -> bool:
    return name == _OWN_LOGGER or name.startswith(_OWN_LOGGER + ".")


def format_line(
    message: str,
    level: LogLevel,
    timestamp: datetime,
    sequence: int,
    session_id: Optional[str] = None,
    event_id: int = 0,
) -> str:
    """
    Render a tab-separated log line:

        \\t[seq]\\tdd-mm-YYYY HH:MM:SS\\tINFO\\t[event]\\t\\t[Session ID: s]\\t\\t[Message: m]\\t
    """
    return (
        f"\t[{sequence}]\t{timestamp.strftime(LINE_TIMESTAMP_FORMAT)}\t{level.short_code}"
        f"\t[{event_id}]\t\t[Session ID: {session_id or NOT_ESTABLISHED}]\t"
        f"\t[Message: {message}]\t"
    )


class LineFormatter(logging.Formatter):
    """
    Formatter producing format_line() output.

    The sequence number is counted per formatter instance.
    """

    def __init__(self, session_provider: Callable[[], Optional[str]] = get_session_id):
        super().__init__()
        self.session_provider = session_provider
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def format(self, record: logging.LogRecord) -> str:
        with self._lock:
            sequence = next(self._sequence)
        line = format_line(
            record.getMessage(),
            LogLevel.from_logging(record.levelno),
            datetime.fromtimestamp(record.created, tz=timezone.utc),
            sequence,
            session_id=self.session_provider(),
            event_id=getattr(record, "event_id", 0),
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class SessionLogHandler(logging.Handler):
    """
    Sends log records of the current session to an IngestionEntrypoint.

    Usage:
        handler = SessionLogHandler(entrypoint, LoggerConfiguration(flush_count=20))
        logging.getLogger("shop").addHandler(handler)

        with session_scope("checkout-42"):
            logging.getLogger("shop").info("cart created")
    """

    def __init__(
        self,
        entrypoint: IngestionEntrypoint,
        configuration: Optional[LoggerConfiguration] = None,
        session_provider: Callable[[], Optional[str]] = get_session_id,
        level: int = logging.NOTSET,
    ):
        """
        Initialize the handler.

        Args:
            entrypoint: Pipeline entrypoint records are ingested through
            configuration: Configuration registered for every session seen.
                Defaults to the entrypoint's default configuration.
            session_provider: Returns the current session id or None
            level: Minimum level handled
        """
        super().__init__(level)
        self.entrypoint = entrypoint
        self.configuration = configuration
        self.session_provider = session_provider
        self.skipped_count = 0

    def emit(self, record: logging.LogRecord) -> None:
        if _is_own_logger(record.name):
            return

        session_id = self.session_provider()
        if not session_id:
            self.skipped_count += 1
            return

        try:
            if self.configuration is not None:
                self.entrypoint.register_session(session_id, self.configuration)
            self.entrypoint.ingest(
                session_id,
                self.format(record),
                level=LogLevel.from_logging(record.levelno),
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
            )
        except Exception:
            self.handleError(record)
