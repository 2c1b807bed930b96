from __future__ import annotations

from pathlib import Path


def project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def data_dir(configured: Path | None = None) -> Path:
    """DATA_DIR when configured, else <project root>/data. Created on demand."""
    if configured is None:
        configured = project_root() / "data"
    return ensure_dir(configured)


def backups_dir(base: Path) -> Path:
    return ensure_dir(base / "backups")


def document_path(base: Path, file_name: str) -> Path:
    """A document file directly inside base; names with directory parts are rejected."""
    name = file_name.strip()
    if not name or Path(name).name != name or name in (".", ".."):
        raise ValueError(f"document file name must be a plain file name, got {file_name!r}")
    return base / name
