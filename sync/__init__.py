from __future__ import annotations

from .listener import CrossInstanceSyncListener
from .notifier import ALL, ChangeNotifier
from .remote import RemoteSyncClient
from .scheduler import DebouncedSyncScheduler
from .storage import SyncedDataStorage, build_synced_storage

__all__ = [
    "ALL",
    "ChangeNotifier",
    "CrossInstanceSyncListener",
    "DebouncedSyncScheduler",
    "RemoteSyncClient",
    "SyncedDataStorage",
    "build_synced_storage",
]
