"""
Durable key-value storage for device and session identity.

Backends store string values under string keys, the same contract as a
browser's ``localStorage``. Every fault is raised as ``StorageError``; the
identity layer decides how to fail open.

Thread/process safety:
    ``FileStorage`` re-reads the file on every access and replaces it
    atomically on write, so several processes can share one state file.
    No lock is held across read-modify-write; a lost update is tolerated.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from watchlog_rum.exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_PATH = Path.home() / ".watchlog_rum" / "state.json"


class StorageBackend(ABC):
    """Abstract base class for persistent key-value stores."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key if present."""
        pass


class MemoryStorage(StorageBackend):
    """Process-local storage, for tests and hosts without a writable disk."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class FileStorage(StorageBackend):
    """
    JSON-file backed storage.

    The whole store is one JSON object mapping keys to string values.
    A corrupt file reads as a fault but is overwritten by the next write.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path).expanduser() if path else DEFAULT_STORAGE_PATH

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Unexpected content in {self.path}")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".state-", suffix=".json", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f)
                os.replace(tmp_path, self.path)
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def _read_for_update(self) -> Dict[str, str]:
        try:
            return self._read()
        except StorageError as e:
            logger.debug(f"[Storage] Discarding unreadable state: {e}")
            return {}

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._read_for_update()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read_for_update()
        if key in data:
            del data[key]
            self._write(data)
