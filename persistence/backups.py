from __future__ import annotations

import itertools
import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from json_store import atomic_write_json

from .document import CuratorDocument
from .locks import GLOBAL_PATH_LOCKS

logger = logging.getLogger(__name__)

_COUNTER = itertools.count()
_COUNTER_LOCK = threading.Lock()


class BackupInfo(BaseModel):
    filename: str
    size: int
    createdAt: str


def backup_filename(now: datetime | None = None) -> str:
    """
    backup-<YYYY-MM-DD>-<epoch_ns>-<counter>.json

    The process-wide counter keeps names distinct even when the clock does not move.
    """
    day = (now or datetime.now(timezone.utc)).date().isoformat()
    with _COUNTER_LOCK:
        seq = next(_COUNTER)
    return f"backup-{day}-{time.time_ns():020d}-{seq:06d}.json"


class BackupManager:
    def __init__(self, directory: Path):
        self._dir = directory

    @property
    def directory(self) -> Path:
        return self._dir

    def snapshot(self, doc: CuratorDocument) -> Path | None:
        """Write an immutable copy of doc. Failures are logged, never raised."""
        try:
            with GLOBAL_PATH_LOCKS.hold(self._dir):
                self._dir.mkdir(parents=True, exist_ok=True)
                path = self._dir / backup_filename()
                atomic_write_json(path, doc.to_disk_doc())
        except (OSError, TypeError, ValueError):
            logger.exception("BACKUP: failed to snapshot into %s", self._dir)
            return None
        logger.debug("BACKUP: wrote %s", path.name)
        return path

    def list_backups(self) -> list[BackupInfo]:
        """Backups newest first; [] when none were ever written."""
        if not self._dir.is_dir():
            return []
        entries: list[tuple[int, str, BackupInfo]] = []
        for path in self._dir.iterdir():
            if not path.is_file() or path.suffix != ".json":
                continue
            try:
                st = path.stat()
            except OSError:
                # Removed between listing and stat.
                continue
            created = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
            info = BackupInfo(
                filename=path.name,
                size=st.st_size,
                createdAt=created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            )
            entries.append((st.st_mtime_ns, path.name, info))
        entries.sort(key=lambda e: (e[0], e[1]), reverse=True)
        return [info for _, _, info in entries]
