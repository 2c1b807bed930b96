from __future__ import annotations

import contextlib
import threading
from pathlib import Path
from typing import Iterator


class PathLockRegistry:
    """
    One re-entrant lock per resolved path.

    Serializes the load/replace cycle of a document file and the writes into a
    backup directory within one process. Other processes are not coordinated;
    the atomic replace is what keeps their readers from seeing half a file.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    @staticmethod
    def _key(path: Path) -> str:
        return str(path.resolve())

    def lock_for(self, path: Path) -> threading.RLock:
        key = self._key(path)
        with self._guard:
            return self._locks.setdefault(key, threading.RLock())

    @contextlib.contextmanager
    def hold(self, path: Path) -> Iterator[None]:
        with self.lock_for(path):
            yield


GLOBAL_PATH_LOCKS = PathLockRegistry()
