"""Key-value storage media for local persistence."""

import logging
import os
import re
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Protocol for a durable string key-value medium."""

    def get(self, key: str) -> str | None:
        """Return the stored value or None if the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def remove(self, key: str) -> None:
        """Delete a key; absent keys are ignored."""
        ...


class MemoryKeyValueStore:
    """Non-durable medium, used when no storage directory is configured."""

    def __init__(self) -> None:
        """Initialize empty store."""
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore:
    """One file per key inside a directory.

    Writes go to a temporary file that is then renamed over the target, so
    a reader never sees a half-written value.
    """

    def __init__(self, directory: str | Path) -> None:
        """Initialize store rooted at directory (created if missing)."""
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"[FileKeyValueStore] Using {self._dir}")

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self._dir / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
