from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def read_json(path: Path) -> Any | None:
    """
    Read JSON from disk.

    Returns None for missing files, empty files, or invalid JSON. Invalid JSON is
    logged; callers treat it the same as "no data yet".
    """
    if not path.exists():
        return None
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("JSON READ: failed to read %s: %r", path, e)
        return None
    if not raw.strip():
        return None
    return decode_json(raw, source=str(path))


def decode_json(raw: str, *, source: str = "<string>") -> Any | None:
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.warning("JSON READ: invalid JSON in %s: %s", source, e)
        return None


def dump_json(payload: Any, *, indent: int | None = 2, sort_keys: bool = False) -> str:
    return json.dumps(payload, indent=indent, sort_keys=sort_keys, ensure_ascii=False)


def atomic_write_json(path: Path, payload: Any, *, indent: int = 2, sort_keys: bool = False) -> None:
    """
    Atomically write JSON to disk by writing to a temp file then replacing.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        f.write(dump_json(payload, indent=indent, sort_keys=sort_keys))
        f.write("\n")
    tmp_path.replace(path)
