"""
FlushCoordinator - single-flight flushing per session key.

After every append the entrypoint hands the fresh buffer stats to
on_mutation(). If the flush policy fires, the coordinator takes the key's
flush token without blocking and runs:

    snapshot_and_clear -> sink.push -> delete (durable mode only)

The token guards this sequence only. Appends to the key keep succeeding
while a flush is in flight and land in the freshly emptied buffer.

If the token is already held the evaluation is skipped and the key is
marked deferred. The holder re-checks the buffer before it gives up the
token. Should the mark outlive the holder, the next append to the key
flushes as soon as the buffer is at or past its count threshold, so a
threshold crossed while the token was held is not lost.

Nothing raised on the flush path reaches the caller. Failures are logged
and counted, and a rejected batch is dropped, not re-buffered.
"""

import logging
import threading
from concurrent.futures import Executor
from typing import Dict, Optional, Set

from .config import LoggerConfiguration, StorageMode
from .policy import BufferStats, is_overdue, should_flush
from .record import LogRecord
from .sink import BulkSink, PushResult
from .store import BufferStore

logger = logging.getLogger(__name__)


class FlushCoordinator:
    """
    Serializes flushes per session key and reports their outcome.

    Args:
        sink: Bulk sink batches are pushed to
        executor: Optional executor to run flushes off the ingestion thread.
            Leave unset in stateless invocations, which must finish their
            flush before returning.
    """

    def __init__(self, sink: BulkSink, executor: Optional[Executor] = None):
        self.sink = sink
        self.executor = executor
        self._tokens: Dict[str, threading.Lock] = {}
        self._deferred: Set[str] = set()
        self._state_lock = threading.Lock()
        self._counters = {
            "flushes": 0,
            "failed_flushes": 0,
            "lost_records": 0,
            "deferred": 0,
            "immediate": 0,
        }

    def lock_for(self, key: str) -> threading.Lock:
        """
        Return the flush token of key, creating it on first use.

        Tokens are dropped once a flush finishes with nothing deferred.
        """
        with self._state_lock:
            token = self._tokens.get(key)
            if token is None:
                token = threading.Lock()
                self._tokens[key] = token
            return token

    def on_mutation(
        self,
        key: str,
        stats: BufferStats,
        config: LoggerConfiguration,
        store: BufferStore,
    ) -> bool:
        """
        React to a successful append.

        Returns:
            True if a flush was run (or scheduled on the executor)
        """
        if not (should_flush(stats, config) or self._catch_up(key, stats, config)):
            return False

        logger.debug(f"Flush threshold reached for session {key} ({stats.count} records)")
        if self.executor is not None:
            self.executor.submit(self._run_flush, key, config, store)
            return True
        return self._run_flush(key, config, store)

    def flush_now(self, key: str, config: LoggerConfiguration, store: BufferStore) -> bool:
        """Flush key regardless of thresholds, e.g. at shutdown."""
        return self._run_flush(key, config, store)

    def push_immediate(self, key: str, record: LogRecord, config: LoggerConfiguration) -> PushResult:
        """Send a single record straight to the sink (no thresholds configured)."""
        result = self.sink.push((record,), config.sink_target, key)
        with self._state_lock:
            self._counters["immediate"] += 1
            if not result.ok:
                self._counters["failed_flushes"] += 1
                self._counters["lost_records"] += 1
        if not result.ok:
            logger.error(f"Lost record for session {key}: {result.error}")
        return result

    @property
    def counters(self) -> Dict[str, int]:
        """Snapshot of flush counters since the coordinator was created."""
        with self._state_lock:
            return dict(self._counters)

    # -- internals ----------------------------------------------------------

    def _run_flush(self, key: str, config: LoggerConfiguration, store: BufferStore) -> bool:
        flushed = False
        first = True

        while True:
            token = self._acquire(key)
            if token is None:
                logger.debug(f"Flush already in flight for session {key}, deferring")
                return flushed
            try:
                if first or self._needs_flush(key, config, store):
                    flushed = self._drain(key, config, store) or flushed
            except Exception:
                logger.exception(f"Unexpected error flushing session {key}")
            finally:
                pending = self._release(key, token)

            first = False
            if not pending:
                return flushed

    def _acquire(self, key: str) -> Optional[threading.Lock]:
        """Take the token of key, or mark key deferred if someone holds it."""
        with self._state_lock:
            token = self._tokens.get(key)
            if token is None:
                token = threading.Lock()
                self._tokens[key] = token
            if token.acquire(blocking=False):
                self._deferred.discard(key)
                return token
            self._deferred.add(key)
            self._counters["deferred"] += 1
            return None

    def _release(self, key: str, token: threading.Lock) -> bool:
        """
        Give the token back. Returns True if a flush of key was deferred
        while it was held, in which case the caller must check again.

        Releasing and reading the deferred mark happen under one lock, so a
        deferral either shows up here or finds the token free.
        """
        with self._state_lock:
            token.release()
            pending = key in self._deferred
            if not pending and self._tokens.get(key) is token:
                del self._tokens[key]
            return pending

    def _needs_flush(self, key: str, config: LoggerConfiguration, store: BufferStore) -> bool:
        current = store.peek_stats(key)
        return should_flush(current, config) or is_overdue(current, config)

    def _drain(self, key: str, config: LoggerConfiguration, store: BufferStore) -> bool:
        try:
            batch = store.snapshot_and_clear(key)
        except Exception as e:
            logger.error(f"Could not take buffer of session {key} for flushing: {e}")
            return False

        if not batch:
            return False

        result = self.sink.push(batch, config.sink_target, key)
        with self._state_lock:
            if result.ok:
                self._counters["flushes"] += 1
            else:
                self._counters["failed_flushes"] += 1
                self._counters["lost_records"] += len(batch)

        if result.ok:
            logger.info(f"Flushed {len(batch)} records for session {key} to {result.target}")
        else:
            logger.error(
                f"Dropped batch of {len(batch)} records for session {key}: {result.error}"
            )

        if store.mode == StorageMode.DURABLE:
            try:
                store.delete(key)
            except Exception as e:
                logger.error(f"Could not remove drained buffer of session {key}: {e}")
        return True

    def _catch_up(self, key: str, stats: BufferStats, config: LoggerConfiguration) -> bool:
        """True if key was deferred, nobody holds its token and the buffer is due."""
        with self._state_lock:
            token = self._tokens.get(key)
            stranded = key in self._deferred and (token is None or not token.locked())
        return stranded and is_overdue(stats, config)
