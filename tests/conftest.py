from __future__ import annotations

import dataclasses
from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for imports like `import persistence...` under pytest import modes
# that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def sandbox_project(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """
    Redirect persistence paths to a temp project directory so tests never touch real ./data.
    """
    import persistence.paths as paths

    def _project_root() -> Path:
        return tmp_path

    def _data_dir(configured: Path | None = None) -> Path:
        p = configured if configured is not None else tmp_path / "data"
        p.mkdir(parents=True, exist_ok=True)
        return p

    monkeypatch.setattr(paths, "project_root", _project_root)
    monkeypatch.setattr(paths, "data_dir", _data_dir)
    _data_dir()
    return tmp_path


@pytest.fixture
def settings(sandbox_project: Path):
    """
    Settings pointing at the sandbox data dir, with timers short enough for tests.
    """
    from settings import get_settings

    return dataclasses.replace(
        get_settings(),
        data_dir=sandbox_project / "data",
        sync_remote_url="http://remote.test",
        sync_debounce_seconds=0.02,
        sync_interval_seconds=0,
        debug_log_requests=False,
    )


@pytest.fixture
def data_client(settings):
    from fastapi.testclient import TestClient

    import app as app_module

    with TestClient(app_module.create_app(settings)) as client:
        yield client


@pytest.fixture
def questions_client(settings):
    from fastapi.testclient import TestClient

    import app as app_module

    with TestClient(app_module.create_questions_app(settings)) as client:
        yield client
