"""Persisted client-side bookkeeping (the browser's localStorage, for a Python client)."""
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from filelock import FileLock

logger = logging.getLogger(__name__)

LAST_ACTIVITY_KEY = "portal.session.lastActivity"
PENDING_DISPLAY_NAME_KEY = "portal.signup.pendingDisplayName"
PENDING_PHONE_KEY = "portal.signup.pendingPhone"

SESSION_KEYS = (LAST_ACTIVITY_KEY, PENDING_DISPLAY_NAME_KEY, PENDING_PHONE_KEY)


class MemoryStorage:
    """Key/value store that lives as long as the process."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})
        self._lock = threading.RLock()

    @contextmanager
    def _transaction(self) -> Iterator[Dict[str, Any]]:
        with self._lock:
            yield self._data

    def get(self, key: str, default: Any = None) -> Any:
        with self._transaction() as data:
            return data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._transaction() as data:
            data[key] = value
            self._flush()

    def remove(self, *keys: str) -> None:
        self.take(*keys)

    def take(self, *keys: str) -> Dict[str, Any]:
        """Remove the keys and return the values they held, in one step"""
        with self._transaction() as data:
            taken = {key: data.pop(key) for key in keys if key in data}
            if taken:
                self._flush()
            return taken

    def restore(self, values: Dict[str, Any]) -> None:
        """Put back values returned by take(), unless a key was set again since"""
        with self._transaction() as data:
            missing = {key: value for key, value in values.items() if key not in data}
            if missing:
                data.update(missing)
                self._flush()

    def _flush(self) -> None:
        pass


class JsonFileStorage(MemoryStorage):
    """
    Key/value store persisted to a JSON file, shared by every process that opens the same path.

    Each operation holds an inter-process lock on ``<path>.lock``, re-reads
    the file and writes it back atomically, so a change made by another
    process is never overwritten by a stale copy.
    """

    def __init__(self, path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file_lock = FileLock(str(self.path.with_name(self.path.name + ".lock")))
        super().__init__()

    @contextmanager
    def _transaction(self) -> Iterator[Dict[str, Any]]:
        with self._lock, self._file_lock:
            self._data = self._load()
            yield self._data

    def _load(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session storage {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".session-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


def open_storage(path: Optional[str] = None) -> MemoryStorage:
    """JSON file storage when a path is configured, memory otherwise"""
    if path:
        return JsonFileStorage(path)
    return MemoryStorage()
