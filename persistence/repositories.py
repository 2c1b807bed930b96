from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from typing import Any, Callable, Mapping, Optional, Protocol

from pydantic import ValidationError

from errors import NotFoundError, PersistenceFailure, ValidationFailure

from .backups import BackupManager
from .document import CuratorDocument, CuratorRecord, QuestionRecord, utc_now_iso
from .document_store import DocumentStore

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase
# Fields a caller's metadata/updates may never overwrite.
_CURATOR_RESERVED = ("id",)
_QUESTION_RESERVED = ("id", "createdAt")

# Called after every successful write with the saved document and the section it touched.
SavedHook = Callable[[CuratorDocument, Optional[str]], None]


def new_curator_id(org: str, taken: Mapping[str, Any]) -> str:
    millis = int(time.time() * 1000)
    curator_id = f"{org}_{millis}"
    while curator_id in taken:
        millis += 1
        curator_id = f"{org}_{millis}"
    return curator_id


def new_question_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"q_{int(time.time() * 1000)}_{suffix}"


def _strip_reserved(values: Mapping[str, Any] | None, reserved: tuple[str, ...]) -> dict[str, Any]:
    return {k: v for k, v in (values or {}).items() if k not in reserved}


class CuratorRepository:
    """
    Read-modify-write operations on the curator document.

    Each call loads a fresh copy, mutates it and saves the whole document. A
    failed save raises PersistenceFailure; the persisted document is untouched.
    """

    def __init__(
        self,
        store: DocumentStore,
        backups: BackupManager | None = None,
        *,
        on_saved: SavedHook | None = None,
    ):
        self._store = store
        self._backups = backups
        self._on_saved = on_saved

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def backups(self) -> BackupManager | None:
        return self._backups

    def _save(self, doc: CuratorDocument, action: str, *, section: str | None = None) -> CuratorDocument:
        if not self._store.save(doc):
            raise PersistenceFailure(f"Error saving data ({action})")
        self._saved(doc, section)
        return doc

    def _saved(self, doc: CuratorDocument, section: str | None) -> None:
        if self._on_saved is not None:
            self._on_saved(doc, section)

    # -- whole document -------------------------------------------------

    def get_document(self) -> CuratorDocument:
        return self._store.load()

    def get_section(self, section: str) -> Any | None:
        return self._store.load().to_disk_doc().get(section)

    def set_section(self, section: str, value: Any) -> CuratorDocument:
        if section == "metadata":
            raise ValidationFailure("metadata is managed by the store")
        raw = self._store.load().to_disk_doc()
        raw[section] = value
        try:
            doc = CuratorDocument.model_validate(raw)
        except ValidationError as e:
            raise ValidationFailure(f"Invalid {section} section: {e.error_count()} validation error(s)") from e
        return self._save(doc, f"set {section}", section=section)

    def replace_document(self, payload: Mapping[str, Any]) -> CuratorDocument:
        """Snapshot the incoming document, then overwrite the persisted one with it."""
        try:
            doc = CuratorDocument.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailure(f"Invalid data format: {e.error_count()} validation error(s)") from e
        if self._backups is not None:
            self._backups.snapshot(doc)
        return self._save(doc, "replace")

    def import_document(self, payload: Any) -> CuratorDocument:
        if not isinstance(payload, Mapping):
            raise ValidationFailure("Invalid data format")
        missing = [k for k in ("curators", "questions") if not isinstance(payload.get(k), Mapping)]
        if missing:
            raise ValidationFailure(f"Invalid data format: missing {', '.join(missing)}")
        return self.replace_document(payload)

    def reset(self) -> CuratorDocument:
        doc = self._store.reset()
        if doc is None:
            raise PersistenceFailure("Error resetting data")
        self._saved(doc, None)
        return doc

    def stats(self) -> dict[str, Any]:
        doc = self._store.load()
        return {
            "totalCurators": len(doc.curators),
            "totalQuestions": len(doc.questions),
            "organizations": len(doc.organizations),
            "lastModified": doc.metadata.lastModified,
        }

    # -- curators -------------------------------------------------------

    def add_curator(self, org: str, name: str, metadata: Mapping[str, Any] | None = None) -> CuratorRecord:
        name = (name or "").strip()
        if not name:
            raise ValidationFailure("Curator name is required")
        doc = self._store.load()
        curator_id = new_curator_id(org, doc.curators)
        try:
            record = CuratorRecord.model_validate(
                {
                    "createdAt": utc_now_iso(),
                    **_strip_reserved(metadata, _CURATOR_RESERVED),
                    "id": curator_id,
                    "name": name,
                    "organization": org,
                }
            )
        except ValidationError as e:
            raise ValidationFailure(f"Invalid curator metadata: {e.error_count()} validation error(s)") from e
        doc.curators[curator_id] = record

        if not doc.attach_curator(curator_id, org):
            # Unknown organization: the record is kept, just not attached anywhere.
            logger.info("CURATOR ADD: organization %s not found, %s left unattached", org, curator_id)

        self._save(doc, "add curator", section="curators")
        return record

    def get_curator(self, curator_id: str) -> CuratorRecord | None:
        return self._store.load().curators.get(curator_id)

    def get_curators_by_org(self, org: str) -> list[CuratorRecord]:
        doc = self._store.load()
        if org not in doc.organizations:
            raise NotFoundError("Organization not found")
        return doc.curators_for(org)

    def update_curator(self, curator_id: str, updates: Mapping[str, Any]) -> CuratorRecord:
        doc = self._store.load()
        current = doc.curators.get(curator_id)
        if current is None:
            raise NotFoundError("Curator not found")
        merged = {**current.model_dump(mode="json"), **_strip_reserved(updates, _CURATOR_RESERVED), "id": curator_id}
        try:
            record = CuratorRecord.model_validate(merged)
        except ValidationError as e:
            raise ValidationFailure(f"Invalid curator update: {e.error_count()} validation error(s)") from e
        doc.curators[curator_id] = record
        if record.organization != current.organization:
            doc.detach_curator(curator_id)
            if not doc.attach_curator(curator_id, record.organization):
                logger.info(
                    "CURATOR UPDATE: organization %s not found, %s left unattached",
                    record.organization,
                    curator_id,
                )
        self._save(doc, "update curator", section="curators")
        return record

    def remove_curator(self, curator_id: str) -> CuratorRecord:
        doc = self._store.load()
        record = doc.curators.get(curator_id)
        if record is None:
            raise NotFoundError("Curator not found")
        # The id may sit under an org other than record.organization (e.g. after set_section).
        doc.detach_curator(curator_id)
        del doc.curators[curator_id]
        self._save(doc, "delete curator", section="curators")
        return record

    # -- questions ------------------------------------------------------

    def add_question(
        self,
        title: str,
        content: str,
        organization: str = "",
        metadata: Mapping[str, Any] | None = None,
    ) -> QuestionRecord:
        doc = self._store.load()
        question_id = new_question_id()
        while question_id in doc.questions:
            question_id = new_question_id()
        now = utc_now_iso()
        try:
            record = QuestionRecord.model_validate(
                {
                    **_strip_reserved(metadata, _QUESTION_RESERVED + ("updatedAt",)),
                    "id": question_id,
                    "title": title,
                    "content": content,
                    "organization": organization,
                    "createdAt": now,
                    "updatedAt": now,
                }
            )
        except ValidationError as e:
            raise ValidationFailure(f"Invalid question metadata: {e.error_count()} validation error(s)") from e
        doc.questions[question_id] = record
        self._save(doc, "add question", section="questions")
        logger.info("QUESTION ADD: %s", question_id)
        return record

    def get_question(self, question_id: str) -> QuestionRecord | None:
        return self._store.load().questions.get(question_id)

    def list_questions(self, organization: str | None = None) -> list[QuestionRecord]:
        questions = list(self._store.load().questions.values())
        if organization is None:
            return questions
        filtered = [q for q in questions if q.organization == organization]
        return sorted(filtered, key=lambda q: q.updatedAt or "", reverse=True)

    def update_question(self, question_id: str, updates: Mapping[str, Any]) -> QuestionRecord:
        doc = self._store.load()
        current = doc.questions.get(question_id)
        if current is None:
            raise NotFoundError("Question not found")
        merged = {
            **current.model_dump(mode="json"),
            **_strip_reserved(updates, _QUESTION_RESERVED),
            "id": question_id,
            "updatedAt": utc_now_iso(),
        }
        try:
            record = QuestionRecord.model_validate(merged)
        except ValidationError as e:
            raise ValidationFailure(f"Invalid question update: {e.error_count()} validation error(s)") from e
        doc.questions[question_id] = record
        self._save(doc, "update question", section="questions")
        return record

    def remove_question(self, question_id: str) -> QuestionRecord:
        doc = self._store.load()
        record = doc.questions.pop(question_id, None)
        if record is None:
            raise NotFoundError("Question not found")
        self._save(doc, "delete question", section="questions")
        return record


class AsyncCuratorRepository(Protocol):
    async def get_document(self) -> CuratorDocument: ...
    async def replace_document(self, payload: Mapping[str, Any]) -> CuratorDocument: ...
    async def import_document(self, payload: Any) -> CuratorDocument: ...
    async def stats(self) -> dict[str, Any]: ...

    async def add_curator(self, org: str, name: str, metadata: Mapping[str, Any] | None = None) -> CuratorRecord: ...
    async def get_curators_by_org(self, org: str) -> list[CuratorRecord]: ...
    async def remove_curator(self, curator_id: str) -> CuratorRecord: ...


class AsyncDiskCuratorRepository(AsyncCuratorRepository):
    """
    Async wrapper around the disk-backed curator repository.
    Uses asyncio.to_thread to avoid blocking the event loop on file I/O.
    """

    def __init__(self, repo: CuratorRepository) -> None:
        self._repo = repo

    @property
    def repo(self) -> CuratorRepository:
        return self._repo

    async def get_document(self) -> CuratorDocument:
        return await asyncio.to_thread(self._repo.get_document)

    async def replace_document(self, payload: Mapping[str, Any]) -> CuratorDocument:
        return await asyncio.to_thread(self._repo.replace_document, payload)

    async def import_document(self, payload: Any) -> CuratorDocument:
        return await asyncio.to_thread(self._repo.import_document, payload)

    async def stats(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._repo.stats)

    async def add_curator(self, org: str, name: str, metadata: Mapping[str, Any] | None = None) -> CuratorRecord:
        return await asyncio.to_thread(self._repo.add_curator, org, name, metadata)

    async def get_curators_by_org(self, org: str) -> list[CuratorRecord]:
        return await asyncio.to_thread(self._repo.get_curators_by_org, org)

    async def remove_curator(self, curator_id: str) -> CuratorRecord:
        return await asyncio.to_thread(self._repo.remove_curator, curator_id)
