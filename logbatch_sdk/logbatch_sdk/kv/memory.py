"""
In-process key-value store for tests and local development.
"""

import threading
from typing import Dict, Optional

from . import KeyValueStore


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Contents do not survive the process."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._data)
