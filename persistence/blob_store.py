from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from json_store import decode_json, dump_json

from .interfaces import KeyValueDocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """A change to a shared storage key, as seen by instances other than the writer."""

    key: str
    old_value: str | None
    new_value: str | None
    origin: str


StorageListener = Callable[[StorageEvent], None]


class InMemoryBlobStorage:
    """
    Host-side key/value string storage shared by several instances.

    Plays the role browser local-storage plays for tabs: every write is
    broadcast to the listeners of every *other* origin, never back to the writer.
    """

    def __init__(self, *, quota_bytes: int | None = None) -> None:
        self._guard = threading.Lock()
        self._items: dict[str, str] = {}
        self._listeners: list[tuple[str, StorageListener]] = []
        self._quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        with self._guard:
            return self._items.get(key)

    def set_item(self, key: str, value: str, *, origin: str) -> None:
        with self._guard:
            if self._quota_bytes is not None:
                used = sum(len(v.encode("utf-8")) for k, v in self._items.items() if k != key)
                if used + len(value.encode("utf-8")) > self._quota_bytes:
                    raise OSError(f"storage quota exceeded writing {key!r}")
            old = self._items.get(key)
            self._items[key] = value
        self._dispatch(StorageEvent(key=key, old_value=old, new_value=value, origin=origin))

    def remove_item(self, key: str, *, origin: str) -> None:
        with self._guard:
            old = self._items.pop(key, None)
        if old is not None:
            self._dispatch(StorageEvent(key=key, old_value=old, new_value=None, origin=origin))

    def add_listener(self, listener: StorageListener, *, origin: str) -> Callable[[], None]:
        entry = (origin, listener)
        with self._guard:
            self._listeners.append(entry)

        def _remove() -> None:
            with self._guard:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return _remove

    def _dispatch(self, event: StorageEvent) -> None:
        with self._guard:
            listeners = list(self._listeners)
        for listener_origin, listener in listeners:
            if listener_origin == event.origin:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception("STORAGE EVENT: listener failed for key=%s", event.key)


def new_origin() -> str:
    return f"inst_{uuid.uuid4().hex[:12]}"


class BlobJsonDocumentStore(KeyValueDocumentStore):
    """
    Stores a single JSON document as a string under one storage key.
    """

    def __init__(self, storage: InMemoryBlobStorage, key: str, *, origin: str | None = None):
        self._storage = storage
        self._key = key
        self._origin = origin or new_origin()

    @property
    def storage(self) -> InMemoryBlobStorage:
        return self._storage

    @property
    def key(self) -> str:
        return self._key

    @property
    def origin(self) -> str:
        return self._origin

    @property
    def location(self) -> str:
        return f"blob:{self._key}"

    def load(self) -> dict[str, Any] | None:
        raw = self._storage.get_item(self._key)
        if raw is None or not raw.strip():
            return None
        doc = decode_json(raw, source=self.location)
        return doc if isinstance(doc, dict) else None

    def save(self, doc: dict[str, Any]) -> None:
        self._storage.set_item(self._key, dump_json(doc, indent=None), origin=self._origin)

    def clear(self) -> None:
        self._storage.remove_item(self._key, origin=self._origin)
