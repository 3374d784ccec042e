"""
Local filesystem key-value store.
"""

import hashlib
import os
import re
import threading
from pathlib import Path
from typing import Optional, Union

from . import KeyValueStore


_SAFE_KEY_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class FileKeyValueStore(KeyValueStore):
    """
    Stores each key as one file.

    Files are organized as:
        {base_dir}/{key}.json

    Keys that are not filesystem-safe are stored under their SHA-256 digest.
    Writes go to a temporary file first and are moved into place, so a
    reader never observes a half-written value.
    """

    def __init__(self, base_dir: Union[str, Path] = ".logbatch/buffers"):
        """
        Initialize the store.

        Args:
            base_dir: Directory holding one file per key
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if _SAFE_KEY_RE.match(key) and key not in (".", ".."):
            name = key
        else:
            name = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.base_dir / f"{name}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def put(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(f".{os.getpid()}.{threading.get_ident()}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(value)
        os.replace(tmp_path, path)

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
