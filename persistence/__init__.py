from __future__ import annotations

from .backups import BackupInfo, BackupManager
from .blob_store import BlobJsonDocumentStore, InMemoryBlobStorage, StorageEvent
from .disk_store import DiskJsonDocumentStore
from .document import CuratorDocument, CuratorRecord, OrganizationRecord, QuestionRecord
from .document_store import DocumentStore
from .question_bank import QuestionBank
from .repositories import AsyncCuratorRepository, AsyncDiskCuratorRepository, CuratorRepository
from .roster import CuratorRoster

__all__ = [
    "BackupInfo",
    "BackupManager",
    "BlobJsonDocumentStore",
    "InMemoryBlobStorage",
    "StorageEvent",
    "DiskJsonDocumentStore",
    "CuratorDocument",
    "CuratorRecord",
    "OrganizationRecord",
    "QuestionRecord",
    "DocumentStore",
    "QuestionBank",
    "AsyncCuratorRepository",
    "AsyncDiskCuratorRepository",
    "CuratorRepository",
    "CuratorRoster",
]
