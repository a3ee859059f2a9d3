"""
Durable JSON key/value store.

Each key is one JSON file in the storage directory, wrapped in a
versioned envelope. A payload with another version reads as absent.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Any, Optional

import structlog

from ecoscan.domain.shared.errors import PersistenceError

logger = structlog.get_logger(__name__)

STORE_VERSION = 1


class JsonFileStore:
    """File-backed implementation of IKeyValueStore.

    Writes go to a temporary file first and are renamed into place so a
    crash never leaves a half-written store.

    Example:
        >>> store = JsonFileStore(Path("/tmp/ecoscan"))
        >>> await store.save("history", [])
        >>> assert await store.load("history") == []
    """

    def __init__(self, directory: Path, version: int = STORE_VERSION) -> None:
        """Initialize store.

        Args:
            directory: Directory holding one file per key
            version: Envelope version written and accepted
        """
        self.directory = directory
        self.version = version

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None

        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read {path.name}: {e}") from e

        if not isinstance(envelope, dict) or envelope.get("version") != self.version:
            logger.warning(
                "Store version mismatch, treating as absent",
                key=key,
                found=envelope.get("version") if isinstance(envelope, dict) else None,
                expected=self.version,
            )
            return None

        return envelope.get("data")

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(
                {"version": self.version, "data": value},
                ensure_ascii=False,
                indent=2,
                sort_keys=True,
            )
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write {path.name}: {e}") from e

    def _remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot delete {key}: {e}") from e

    async def load(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, key)

    async def save(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)


class InMemoryStore:
    """In-memory IKeyValueStore for tests and ephemeral sessions.

    Values are deep-copied on the way in and out so callers never share
    state with the store.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    async def load(self, key: str) -> Optional[Any]:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    async def save(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)
