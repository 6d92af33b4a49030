"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from markshelf import __version__
from markshelf.api.archive import router as archive_router
from markshelf.api.health import router as health_router
from markshelf.api.highlights import router as highlights_router
from markshelf.config import Settings
from markshelf.database import create_engine, ensure_sqlite_directory, init_schema
from markshelf.exceptions import NotFoundError
from markshelf.filesystem.content_manager import ContentManager
from markshelf.services.backup_service import BackupStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    settings.validate_runtime()
    _configure_logging(settings.debug)
    logger.info("Starting Markshelf (content_dir=%s)", settings.content_dir)

    try:
        ensure_sqlite_directory(settings.database_url)
        engine, session_factory = create_engine(settings)
        app.state.engine = engine
        app.state.session_factory = session_factory
    except Exception as exc:
        logger.critical(
            "Failed to initialize database: %s. Check database path and permissions.", exc
        )
        raise

    try:
        await init_schema(engine)
    except Exception as exc:
        logger.critical("Failed to create database schema: %s.", exc)
        raise

    content_manager = ContentManager(
        content_dir=settings.content_dir, max_depth=settings.scan_max_depth
    )
    app.state.content_manager = content_manager
    app.state.backup_store = BackupStore(backup_dir=settings.backup_dir)

    from markshelf.services.resource_service import register_resources

    try:
        async with session_factory() as session:
            added = await register_resources(session, content_manager)
            logger.info("Registered %d new resources from %s", added, content_manager.root)
    except Exception as exc:
        logger.critical("Failed to register resources from filesystem: %s.", exc)
        raise

    yield

    try:
        await engine.dispose()
    except Exception as exc:
        logger.error("Error during engine disposal: %s", exc, exc_info=True)

    logger.info("Markshelf stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    docs_enabled = settings.debug or settings.expose_docs

    app = FastAPI(
        title="Markshelf",
        description="Local Markdown server with persistent highlights",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.include_router(health_router)
    app.include_router(highlights_router)
    app.include_router(archive_router)

    # Global exception handlers

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for err in exc.errors():
            loc = err.get("loc", ())
            field = str(loc[-1]) if loc else "unknown"
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        logger.warning(
            "RequestValidationError in %s %s: %s",
            request.method,
            request.url.path,
            errors,
        )
        return JSONResponse(status_code=422, content={"detail": errors})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        logger.info("NotFoundError in %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=404, content={"detail": str(exc) or "Not found"})

    @app.exception_handler(OSError)
    async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
        if isinstance(exc, (ConnectionError, TimeoutError)):
            raise exc
        logger.error("OSError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Storage operation failed"},
        )

    @app.exception_handler(UnicodeDecodeError)
    async def unicode_error_handler(request: Request, exc: UnicodeDecodeError) -> JSONResponse:
        logger.error(
            "UnicodeDecodeError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=422,
            content={"detail": "Invalid content encoding"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning("ValueError in %s %s: %s", request.method, request.url.path, exc)
        message = str(exc) or "Invalid value"
        return JSONResponse(
            status_code=422,
            content={"detail": message},
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error(
            "OperationalError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Database temporarily unavailable"},
        )

    return app


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "markshelf.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
