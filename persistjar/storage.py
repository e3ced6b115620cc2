"""Durable key/value backends the jar persists its snapshot into.

A backend stores string values under string keys and applies a batch of
writes and removals as one unit, in the manner of a preferences file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path

from filelock import FileLock, Timeout

from .errors import StorageError

logger = logging.getLogger(__name__)


class CookieStorage:
    """Interface every storage handle implements."""

    def keys(self) -> list[str]:
        raise NotImplementedError

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def items(self) -> list[tuple[str, str]]:
        out = []
        for key in self.keys():
            value = self.get(key)
            if value is not None:
                out.append((key, value))
        return out

    def apply(self, puts: Mapping[str, str], removes: Iterable[str] = ()) -> None:
        """Write ``puts`` and delete ``removes`` in a single batch."""
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryStorage(CookieStorage):
    """Process-local storage, mainly for tests and ephemeral clients."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def items(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._data.items())

    def apply(self, puts: Mapping[str, str], removes: Iterable[str] = ()) -> None:
        with self._lock:
            for key in removes:
                self._data.pop(key, None)
            self._data.update(puts)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __repr__(self) -> str:
        return f"<MemoryStorage {len(self._data)} keys>"


class JsonFileStorage(CookieStorage):
    """
    Storage backed by a single JSON object on disk.

    Every batch is a read-modify-write under an inter-process file lock,
    and the new document replaces the old one atomically (temp file +
    rename), so readers never observe a half-applied batch.
    Several jars, in one process or many, may share a file: each jar only
    sweeps the domain entries it loaded or wrote itself.

    Args:
        path: Location of the JSON document.
        lock_timeout: Seconds to wait for the file lock before failing.
    """

    def __init__(self, path: str | os.PathLike, lock_timeout: float = 10.0) -> None:
        self.path = Path(path)
        self.lock_timeout = lock_timeout
        self._file_lock = FileLock(str(self.path) + ".lock", timeout=lock_timeout)

    def _read(self) -> dict[str, str]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Corrupt cookie storage %s, starting empty: %s", self.path, e)
            return {}
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e
        if not isinstance(data, dict):
            logger.warning("Cookie storage %s is not a JSON object, starting empty", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_atomic(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def keys(self) -> list[str]:
        return list(self._read())

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def items(self) -> list[tuple[str, str]]:
        return list(self._read().items())

    def _update(self, puts: Mapping[str, str], removes: Iterable[str], reset: bool) -> None:
        try:
            with self._file_lock:
                data = {} if reset else self._read()
                for key in removes:
                    data.pop(key, None)
                data.update(puts)
                self._write_atomic(data)
        except Timeout as e:
            raise StorageError(f"Timed out locking {self.path}") from e
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def apply(self, puts: Mapping[str, str], removes: Iterable[str] = ()) -> None:
        self._update(puts, removes, reset=False)

    def clear(self) -> None:
        self._update({}, (), reset=True)

    def __repr__(self) -> str:
        return f"<JsonFileStorage {self.path}>"
