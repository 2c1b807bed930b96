from __future__ import annotations

import logging
from typing import Callable, Protocol

from pydantic import ValidationError

from json_store import decode_json
from persistence.blob_store import StorageEvent, StorageListener
from persistence.document import CuratorDocument

from .notifier import ALL, ChangeNotifier

logger = logging.getLogger(__name__)


class ChangeSource(Protocol):
    """Anything that delivers storage change events made outside this instance."""

    def add_listener(self, listener: StorageListener, *, origin: str) -> Callable[[], None]:
        ...


class CrossInstanceSyncListener:
    """
    Re-publishes documents written by other instances to local observers.

    Never requests a remote push: the change already lives in shared storage.
    """

    def __init__(self, source: ChangeSource, key: str, notifier: ChangeNotifier, *, origin: str):
        self._source = source
        self._key = key
        self._notifier = notifier
        self._origin = origin
        self._detach: Callable[[], None] | None = None

    @property
    def attached(self) -> bool:
        return self._detach is not None

    def attach(self) -> None:
        if self._detach is None:
            self._detach = self._source.add_listener(self.handle_event, origin=self._origin)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def handle_event(self, event: StorageEvent) -> None:
        if event.key != self._key:
            return
        if event.new_value is None:
            logger.info("CROSS-INSTANCE: %s was removed by %s", self._key, event.origin)
            return
        raw = decode_json(event.new_value, source=f"storage event for {self._key}")
        if not isinstance(raw, dict):
            return
        try:
            doc = CuratorDocument.from_disk_doc(raw)
        except ValidationError as e:
            logger.warning("CROSS-INSTANCE: ignoring undecodable document from %s: %s", event.origin, e)
            return
        logger.debug("CROSS-INSTANCE: %s changed by %s", self._key, event.origin)
        self._notifier.publish(ALL, doc)
