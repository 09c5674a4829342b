"""
Durable key-value storage for store snapshots.

Each key maps to one JSON document. Writes are atomic so a completed
`set` is visible to the next `get`.
"""
import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from contract_shield.errors import StorageError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


class MemoryStore:
    """
    In-process key-value store with the same interface as JSONFileStore.
    Values are deep-copied through JSON so callers never share state with it.
    """

    def __init__(self):
        self._storage: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._storage.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._storage[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        if key in self._storage:
            del self._storage[key]


class JSONFileStore:
    """
    Key-value store persisting each key as `<directory>/<key>.json`.
    """

    def __init__(self, directory: str):
        """
        Args:
            directory: Folder holding the JSON files. Created on first write.
        """
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        """
        Load the value stored under `key`.

        Returns:
            Decoded JSON value, or None if the key is absent or unreadable.
        """
        path = self._path_for(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Could not read stored value for '{key}': {e}")
                return None

    def set(self, key: str, value: Any) -> None:
        """
        Write `value` under `key` atomically.

        Raises:
            StorageError: If the file cannot be written. The previous value is kept.
        """
        path = self._path_for(key)
        with self._lock:
            try:
                self._write_atomic(key, path, value)
            except OSError as e:
                logger.error(f"Could not persist '{key}' to {path}: {e}")
                raise StorageError(f"Could not write {path}: {e}") from e
        logger.debug(f"Persisted '{key}' to {path}")

    def _write_atomic(self, key: str, path: Path, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.directory), prefix=f".{key}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        with self._lock:
            if path.exists():
                path.unlink()
