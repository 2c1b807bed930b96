from __future__ import annotations

import logging
from typing import Iterable

from pydantic import ValidationError

from json_store import dump_json
from settings import DEFAULT_ORGANIZATIONS

from .document import CuratorDocument
from .interfaces import KeyValueDocumentStore

logger = logging.getLogger(__name__)


class DocumentStore:
    """
    The single authority for the current curator document.

    Every load() returns a fresh, independent copy. Two callers that load, mutate
    and save independently overwrite each other (last write wins); there is no
    version check.
    """

    def __init__(self, medium: KeyValueDocumentStore, *, organizations: Iterable[str] = DEFAULT_ORGANIZATIONS):
        self._medium = medium
        self._organizations = tuple(organizations)

    @property
    def medium(self) -> KeyValueDocumentStore:
        return self._medium

    @property
    def organizations(self) -> tuple[str, ...]:
        return self._organizations

    def skeleton(self) -> CuratorDocument:
        return CuratorDocument.skeleton(self._organizations)

    def load(self) -> CuratorDocument:
        raw = self._medium.load()
        if raw is None:
            return self.skeleton()
        try:
            return CuratorDocument.from_disk_doc(raw)
        except ValidationError as e:
            logger.warning("DOCUMENT LOAD: %s does not match the schema, using defaults: %s", self._medium.location, e)
            return self.skeleton()

    def exists(self) -> bool:
        return self._medium.load() is not None

    def ensure_initialized(self) -> CuratorDocument:
        """Write the default skeleton if nothing usable is persisted yet."""
        raw = self._medium.load()
        if raw:
            doc = self.load()
            if raw.get("metadata") is not None:
                return doc
        else:
            doc = self.skeleton()
        self.save(doc)
        return doc

    def save(self, doc: CuratorDocument) -> bool:
        try:
            doc.stamp_last_modified()
            self._medium.save(doc.to_disk_doc())
        except (OSError, TypeError, ValueError):
            logger.exception("DOCUMENT SAVE: failed to write %s", self._medium.location)
            return False
        return True

    def reset(self) -> CuratorDocument | None:
        doc = self.skeleton()
        if not self.save(doc):
            return None
        logger.info("DOCUMENT RESET: %s replaced with a fresh skeleton", self._medium.location)
        return doc


def serialize_document(doc: CuratorDocument) -> str:
    """Canonical compact form used to detect divergence from the last push."""
    return dump_json(doc.to_disk_doc(), indent=None, sort_keys=True)
