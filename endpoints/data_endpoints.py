# data_endpoints.py
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from json_store import dump_json
from persistence.backups import BackupManager
from persistence.repositories import AsyncCuratorRepository

router = APIRouter(prefix="/api", tags=["data"])
logger = logging.getLogger(__name__)


class CuratorCreate(BaseModel):
    org: str
    name: str
    metadata: dict[str, Any] = Field(default_factory=dict)


def _repo(request: Request) -> AsyncCuratorRepository:
    return request.app.state.curator_repo


def _backups(request: Request) -> BackupManager:
    return request.app.state.backups


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _file_stats(path: Path) -> tuple[int, str | None]:
    try:
        st = path.stat()
    except FileNotFoundError:
        return 0, None
    return st.st_size, _iso(st.st_mtime)


# -------------------------------------------------------------------
# Whole document
# -------------------------------------------------------------------
@router.get("/data")
async def get_data(request: Request):
    doc = await _repo(request).get_document()
    return JSONResponse(doc.to_disk_doc())


@router.get("/data/load")
async def load_data(request: Request):
    return await get_data(request)


@router.post("/data/save")
async def save_data(request: Request, body: dict[str, Any]):
    curators = body.get("curators")
    curator_count = len(curators) if isinstance(curators, dict) else 0
    logger.info("DATA SAVE: saving document to disk (curators=%s)", curator_count)

    doc = await _repo(request).replace_document(body)

    logger.info("DATA SAVE: saved at %s", doc.metadata.lastModified)
    return JSONResponse(
        {
            "success": True,
            "message": "Data saved successfully",
            "timestamp": doc.metadata.lastModified,
            "dataPoints": {"curators": len(doc.curators)},
        }
    )


@router.get("/data/stats")
async def data_stats(request: Request):
    repo = _repo(request)
    stats = await repo.stats()
    size, mtime = await asyncio.to_thread(_file_stats, request.app.state.data_file)
    return JSONResponse(
        {
            "totalCurators": stats["totalCurators"],
            "organizations": stats["organizations"],
            "storageSize": size,
            # File mtime when the document exists on disk.
            "lastModified": mtime or stats["lastModified"],
            "dataPoints": {
                "curators": stats["totalCurators"],
                "questions": stats["totalQuestions"],
            },
        }
    )


# -------------------------------------------------------------------
# Curators
# -------------------------------------------------------------------
@router.post("/curators")
async def add_curator(request: Request, body: CuratorCreate):
    record = await _repo(request).add_curator(body.org, body.name, body.metadata)
    return JSONResponse({"success": True, "curator": record.model_dump(mode="json")})


@router.get("/curators/{org}")
async def get_curators(request: Request, org: str):
    curators = await _repo(request).get_curators_by_org(org)
    return JSONResponse([c.model_dump(mode="json") for c in curators])


@router.delete("/curators/{curator_id}")
async def delete_curator(request: Request, curator_id: str):
    record = await _repo(request).remove_curator(curator_id)
    logger.info("CURATOR DELETE: %s (%s)", curator_id, record.name)
    return JSONResponse({"success": True, "message": "Curator deleted"})


# -------------------------------------------------------------------
# Backups / export / health
# -------------------------------------------------------------------
@router.get("/backups")
async def list_backups(request: Request):
    backups = await asyncio.to_thread(_backups(request).list_backups)
    return JSONResponse([b.model_dump(mode="json") for b in backups])


@router.post("/export")
async def export_data(request: Request) -> Response:
    doc = await _repo(request).get_document()
    filename = f"curator-export-{int(time.time() * 1000)}.json"
    return Response(
        content=dump_json(doc.to_disk_doc()),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health")
async def health(request: Request):
    return JSONResponse(
        {
            "status": "ok",
            "timestamp": _iso(time.time()),
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        }
    )
