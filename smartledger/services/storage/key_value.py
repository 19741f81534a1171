"""
Key-Value Store Implementations

Two engines behind KeyValueStore:
- InMemoryKeyValueStore: tests and throwaway sessions
- JsonFileKeyValueStore: a single JSON object on disk, one entry per key

The file store rewrites the whole file on every set, through a temporary file
and os.replace, so a crash never leaves a half-written document behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog

from smartledger.services.storage.interface import KeyValueStore, StorageError


logger = structlog.get_logger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore(KeyValueStore):
    """
    Store backed by one JSON file.

    A missing file is an empty store. A file that isn't a JSON object is
    treated as empty (and logged) instead of raising, so a corrupted file
    never blocks startup; the next write replaces it.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("kv_store_read_failed", path=str(self._path), error=str(e))
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("kv_store_malformed", path=str(self._path), error=str(e))
            return {}

        if not isinstance(data, dict):
            logger.warning("kv_store_malformed", path=str(self._path), error="not an object")
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self._path.parent),
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, ensure_ascii=False)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}") from e
