from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import httpx

from errors import NotFoundError, ValidationFailure
from json_store import dump_json
from persistence.blob_store import BlobJsonDocumentStore, InMemoryBlobStorage
from persistence.document import CuratorDocument, CuratorRecord, QuestionRecord
from persistence.document_store import DocumentStore
from persistence.repositories import CuratorRepository
from settings import Settings

from .listener import CrossInstanceSyncListener
from .notifier import ALL, ChangeCallback, ChangeNotifier
from .remote import RemoteSyncClient
from .scheduler import DebouncedSyncScheduler

logger = logging.getLogger(__name__)


class SyncedDataStorage:
    """
    Client-side curator storage: local document, change notifications and
    debounced push to the remote data service.

    Construct explicitly, then `await start()` inside a running event loop and
    `await close()` when done (or use `async with`).
    """

    def __init__(
        self,
        store: DocumentStore,
        notifier: ChangeNotifier | None = None,
        scheduler: DebouncedSyncScheduler | None = None,
        listener: CrossInstanceSyncListener | None = None,
    ):
        self._store = store
        self._notifier = notifier or ChangeNotifier()
        self._scheduler = scheduler
        self._listener = listener
        self._repo = CuratorRepository(store, on_saved=self._after_save)

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    @property
    def scheduler(self) -> DebouncedSyncScheduler | None:
        return self._scheduler

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def start(self) -> None:
        self._store.ensure_initialized()
        if self._listener is not None:
            self._listener.attach()
        if self._scheduler is not None:
            self._scheduler.start()
        logger.info("STORAGE: initialized at %s", self._store.medium.location)

    async def close(self, *, flush: bool = False) -> None:
        if self._listener is not None:
            self._listener.detach()
        if self._scheduler is not None:
            await self._scheduler.stop(flush=flush)

    async def __aenter__(self) -> "SyncedDataStorage":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _after_save(self, doc: CuratorDocument, section: str | None) -> None:
        if section is not None:
            value = doc.to_disk_doc().get(section)
            self._notifier.publish(section, value, include_wildcard=False)
        self._notifier.publish(ALL, doc)
        if self._scheduler is not None:
            self._scheduler.request_sync()

    def watch(self, section: str, callback: ChangeCallback):
        return self._notifier.subscribe(section, callback)

    # -- whole document -------------------------------------------------

    def get_all(self) -> CuratorDocument:
        return self._store.load()

    def save_all(self, doc: CuratorDocument | Mapping[str, Any]) -> CuratorDocument:
        payload = doc.to_disk_doc() if isinstance(doc, CuratorDocument) else doc
        return self._repo.replace_document(payload)

    def get_section(self, section: str) -> Any | None:
        return self._repo.get_section(section)

    def set_section(self, section: str, value: Any) -> CuratorDocument:
        return self._repo.set_section(section, value)

    def export_json(self) -> str:
        return dump_json(self._store.load().to_disk_doc())

    def import_json(self, raw: str) -> CuratorDocument:
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise ValidationFailure(f"Import is not valid JSON: {e}") from e
        return self._repo.import_document(payload)

    def clear_all(self) -> CuratorDocument:
        return self._repo.reset()

    def get_stats(self) -> dict[str, Any]:
        doc = self._store.load()
        return {
            "totalCurators": len(doc.curators),
            "totalQuestions": len(doc.questions),
            "organizations": len(doc.organizations),
            "storageUsed": len(dump_json(doc.to_disk_doc(), indent=None).encode("utf-8")),
            "lastModified": doc.metadata.lastModified,
        }

    async def load_from_server(self) -> CuratorDocument | None:
        if self._scheduler is None:
            return None
        doc = await self._scheduler.client.pull()
        if doc is None:
            return None
        return self.save_all(doc)

    # -- curators -------------------------------------------------------

    def add_curator(self, org: str, name: str, metadata: Mapping[str, Any] | None = None) -> CuratorRecord:
        return self._repo.add_curator(org, name, metadata)

    def remove_curator(self, curator_id: str) -> bool:
        try:
            self._repo.remove_curator(curator_id)
        except NotFoundError:
            return False
        return True

    def update_curator(self, curator_id: str, updates: Mapping[str, Any]) -> CuratorRecord | None:
        try:
            return self._repo.update_curator(curator_id, updates)
        except NotFoundError:
            return None

    def get_curators_by_org(self, org: str) -> list[CuratorRecord]:
        return self._store.load().curators_for(org)

    # -- questions ------------------------------------------------------

    def add_question(
        self,
        title: str,
        content: str,
        organization: str = "",
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        return self._repo.add_question(title, content, organization, metadata).id

    def get_all_questions(self) -> dict[str, QuestionRecord]:
        return self._store.load().questions

    def get_questions_by_org(self, org: str) -> list[QuestionRecord]:
        return self._repo.list_questions(org)

    def get_question(self, question_id: str) -> QuestionRecord | None:
        return self._repo.get_question(question_id)

    def update_question(self, question_id: str, updates: Mapping[str, Any]) -> bool:
        try:
            self._repo.update_question(question_id, updates)
        except NotFoundError:
            return False
        return True

    def remove_question(self, question_id: str) -> bool:
        try:
            self._repo.remove_question(question_id)
        except NotFoundError:
            return False
        return True


def build_synced_storage(
    settings: Settings,
    storage: InMemoryBlobStorage,
    *,
    origin: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SyncedDataStorage:
    """Wire one client instance onto a shared blob storage."""
    medium = BlobJsonDocumentStore(storage, settings.storage_key, origin=origin)
    store = DocumentStore(medium, organizations=settings.organizations)
    notifier = ChangeNotifier()
    client = RemoteSyncClient(settings.sync_remote_url, timeout=settings.sync_timeout_seconds, transport=transport)
    scheduler = DebouncedSyncScheduler(
        store,
        client,
        debounce_seconds=settings.sync_debounce_seconds,
        interval_seconds=settings.sync_interval_seconds,
    )
    listener = CrossInstanceSyncListener(storage, medium.key, notifier, origin=medium.origin)
    return SyncedDataStorage(store, notifier, scheduler, listener)
