"""
Key/value persistence for settings and the ledger.

Values are JSON-serialisable objects stored under string keys. Backends are
injected into the stores that use them so tests can swap in MemoryStorage.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from receipt_ledger.errors import PersistenceError

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Minimal key -> JSON value store."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Persist value under key. Raises PersistenceError on failure."""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Cannot serialise '{key}': {e}") from e


class MemoryStorage(StorageBackend):
    """In-process storage. Values are round-tripped through JSON like on disk."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return json.loads(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = _encode(key, value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class JsonFileStorage(StorageBackend):
    """
    All keys in one JSON document on disk.

    Writes go to a temp file in the same directory and are moved into place,
    so a failed write never leaves a half-written document behind.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise PersistenceError(f"Unexpected content in {self.path}")
        return document

    def _write_document(self, document: Dict[str, Any]) -> None:
        payload = _encode(str(self.path), document)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e
        logger.debug(f"Wrote {len(document)} key(s) to {self.path}")

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_document().get(key, default)

    def set(self, key: str, value: Any) -> None:
        _encode(key, value)
        document = self._read_document()
        document[key] = value
        self._write_document(document)

    def delete(self, key: str) -> None:
        document = self._read_document()
        if key in document:
            del document[key]
            self._write_document(document)
