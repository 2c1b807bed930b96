from __future__ import annotations

from pathlib import Path
from typing import Any

from json_store import atomic_write_json, read_json

from .interfaces import KeyValueDocumentStore
from .locks import GLOBAL_PATH_LOCKS


class DiskJsonDocumentStore(KeyValueDocumentStore):
    """
    Stores a single JSON document on disk at a fixed path.

    - Returns None on missing/invalid JSON (or a non-object top level).
    - Writes atomically, pretty-printed.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @property
    def location(self) -> str:
        return str(self._path)

    def load(self) -> dict[str, Any] | None:
        with GLOBAL_PATH_LOCKS.hold(self._path):
            raw = read_json(self._path)
        return raw if isinstance(raw, dict) else None

    def save(self, doc: dict[str, Any]) -> None:
        with GLOBAL_PATH_LOCKS.hold(self._path):
            atomic_write_json(self._path, doc)

    def clear(self) -> None:
        with GLOBAL_PATH_LOCKS.hold(self._path):
            self._path.unlink(missing_ok=True)
