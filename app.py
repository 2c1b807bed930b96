from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dotenv import load_dotenv

from errors import CuratorServiceError
from persistence import paths
from persistence.backups import BackupManager
from persistence.disk_store import DiskJsonDocumentStore
from persistence.document_store import DocumentStore
from persistence.question_bank import QuestionBank
from persistence.repositories import AsyncDiskCuratorRepository, CuratorRepository
from persistence.roster import CuratorRoster
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

_LOGGING_CONFIGURED = False


def configure_logging(level: str = "INFO") -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _LOGGING_CONFIGURED = True


def _resolve_settings(settings: Settings | None) -> Settings:
    if settings is not None:
        return settings
    load_dotenv("local.env")
    return get_settings()


def _data_file(settings: Settings, file_name: str) -> Path:
    return paths.document_path(paths.data_dir(settings.data_dir), file_name)


def _install_common(app: FastAPI, settings: Settings, *, error_key: str) -> None:
    """CORS, optional request logging and the `{success: false, <error_key>}` envelopes."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.debug_log_requests:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            logger.info(
                "REQUEST: %s %s -> %s (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
            )
            return response

    @app.exception_handler(CuratorServiceError)
    async def service_error_handler(request: Request, exc: CuratorServiceError):
        if exc.status_code >= 500:
            logger.error("REQUEST FAILED: %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse({"success": False, error_key: exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.info("REQUEST INVALID: %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse({"success": False, error_key: "Invalid request"}, status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("REQUEST FAILED: %s %s", request.method, request.url.path)
        return JSONResponse({"success": False, error_key: "Internal server error"}, status_code=500)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Curator data service: the document, curators, backups and export."""
    settings = _resolve_settings(settings)
    configure_logging(settings.log_level)

    from endpoints.data_endpoints import router as data_router

    data_file = _data_file(settings, settings.data_file_name)
    store = DocumentStore(DiskJsonDocumentStore(data_file), organizations=settings.organizations)
    backups = BackupManager(paths.backups_dir(data_file.parent))
    repo = CuratorRepository(store, backups)
    roster = CuratorRoster(
        DiskJsonDocumentStore(_data_file(settings, settings.roster_file_name)),
        organizations=settings.organizations,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        await asyncio.to_thread(store.ensure_initialized)
        await asyncio.to_thread(roster.initialize)
        logger.info("DATA SERVICE: document at %s", data_file)
        yield

    app = FastAPI(title="Curator data service", lifespan=lifespan)
    app.state.settings = settings
    app.state.data_file = data_file
    app.state.backups = backups
    app.state.curator_repo = AsyncDiskCuratorRepository(repo)
    app.state.roster = roster
    app.state.started_at = time.monotonic()

    _install_common(app, settings, error_key="message")
    app.include_router(data_router)
    return app


def create_questions_app(settings: Settings | None = None) -> FastAPI:
    """Interview question bank service."""
    settings = _resolve_settings(settings)
    configure_logging(settings.log_level)

    from endpoints.question_endpoints import router as question_router

    questions_file = _data_file(settings, settings.questions_file_name)
    bank = QuestionBank(DiskJsonDocumentStore(questions_file))

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        await asyncio.to_thread(bank.initialize)
        logger.info("QUESTION SERVICE: questions at %s", questions_file)
        yield

    app = FastAPI(title="Interview question service", lifespan=lifespan)
    app.state.settings = settings
    app.state.question_bank = bank

    _install_common(app, settings, error_key="error")
    app.include_router(question_router)
    return app


app = create_app()
questions_app = create_questions_app()
