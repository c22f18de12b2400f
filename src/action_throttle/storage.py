"""Persisted timestamp store and its key/value backends."""

from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

logger = structlog.stdlib.get_logger(__name__)


class StorageBackend(ABC):
    """Raw durable key/value storage. Implementations may raise."""

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...


class InMemoryStorageBackend(StorageBackend):
    """In-memory backend. Share one instance to simulate a reload."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of the stored data. For testing."""
        return dict(self._data)


class UnavailableStorageBackend(StorageBackend):
    """Backend that always fails, like storage disabled in privacy mode."""

    def __init__(self, reason: str = "storage is disabled") -> None:
        self._reason = reason

    def get(self, key: str) -> str | None:
        raise PermissionError(self._reason)

    def set(self, key: str, value: str) -> None:
        raise PermissionError(self._reason)

    def remove(self, key: str) -> None:
        raise PermissionError(self._reason)


class FileStorageBackend(StorageBackend):
    """JSON document on disk, shared by every process that opens the path.

    Writes replace the whole file atomically; concurrent writers are
    last-writer-wins.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def _read(self) -> dict[str, str]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        data = json.loads(text) if text.strip() else {}
        if not isinstance(data, dict):
            raise ValueError(f"storage file is not a JSON object: {self._path}")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class PersistedTimestampStore:
    """Fail-soft wrapper around a StorageBackend.

    No method raises. Read failures return None and write failures return
    False; callers keep working in memory for the current session.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend

    def get(self, key: str) -> str | None:
        try:
            return self._backend.get(key)
        except Exception as e:
            logger.warning("storage read failed", key=key, error=str(e))
            return None

    def set(self, key: str, value: str) -> bool:
        try:
            self._backend.set(key, value)
            return True
        except Exception as e:
            logger.warning("storage write failed", key=key, error=str(e))
            return False

    def remove(self, key: str) -> bool:
        try:
            self._backend.remove(key)
            return True
        except Exception as e:
            logger.warning("storage remove failed", key=key, error=str(e))
            return False
