"""
Durable buffer store for stateless, repeatedly-invoked compute units.

Every operation loads the session buffer from the key-value store, works on
that value and saves it back:

    append             = load-or-create -> append -> save
    snapshot_and_clear = load -> copy -> save empty
    delete             = remove the entry once the batch has been pushed

Nothing is kept in memory between operations.
"""

import json
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Tuple, TypeVar

from ..buffer import SessionBuffer
from ..config import StorageMode
from ..errors import StorageUnavailable
from ..policy import BufferStats
from ..kv import KeyValueStore
from ..record import LogRecord
from . import BufferStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class DurableBufferStore(BufferStore):
    """
    BufferStore backed by an external KeyValueStore.

    Load/mutate/save cycles on one key are serialized within this process.
    Across processes the key-value store's own semantics apply
    (last writer wins).
    """

    mode = StorageMode.DURABLE

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        self._key_locks: Dict[str, _KeyLock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _lock_for(self, key: str) -> Iterator[None]:
        # A key lock lives only while someone holds or waits for it.
        with self._registry_lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._key_locks[key] = entry
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._key_locks[key]

    def append(self, key: str, record: LogRecord) -> BufferStats:
        with self._lock_for(key):
            buffer = self._load(key) or SessionBuffer(key)
            stats = buffer.append(record)
            self._save(buffer)
        logger.debug(f"Persisted record {stats.count} for session {key}")
        return stats

    def snapshot_and_clear(self, key: str) -> Tuple[LogRecord, ...]:
        with self._lock_for(key):
            buffer = self._load(key)
            if buffer is None:
                return ()
            batch = buffer.snapshot_and_clear()
            self._save(buffer)
        return batch

    def delete(self, key: str) -> None:
        """Remove the entry of key, unless records were appended since it was drained."""
        with self._lock_for(key):
            buffer = self._load(key)
            if buffer is not None and len(buffer):
                logger.debug(f"Keeping buffer of session {key}: {len(buffer)} new records")
                return
            self._call("delete", key, lambda: self.kv.delete(key))

    def exists(self, key: str) -> bool:
        return self._call("get", key, lambda: self.kv.get(key)) is not None

    def peek_stats(self, key: str) -> BufferStats:
        buffer = self._load(key)
        if buffer is None:
            return BufferStats()
        return buffer.peek_stats()

    # -- serialization ------------------------------------------------------

    def _load(self, key: str) -> Optional[SessionBuffer]:
        raw = self._call("load", key, lambda: self.kv.get(key))
        if raw is None:
            return None
        try:
            return SessionBuffer.from_dict(json.loads(raw), key=key)
        except (ValueError, TypeError, AttributeError) as e:
            raise StorageUnavailable("decode", key, e) from e

    def _save(self, buffer: SessionBuffer) -> None:
        payload = json.dumps(buffer.to_dict())
        self._call("save", buffer.key, lambda: self.kv.put(buffer.key, payload))

    def _call(self, operation: str, key: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except Exception as e:
            logger.warning(f"Key-value store {operation} failed for session {key}: {e}")
            raise StorageUnavailable(operation, key, e) from e
