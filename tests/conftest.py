"""Shared test fixtures for Markshelf."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from markshelf.config import Settings
from markshelf.database import create_engine, init_schema
from markshelf.filesystem.content_manager import ContentManager
from markshelf.main import create_app
from markshelf.services.backup_service import BackupStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

logger = logging.getLogger(__name__)

ALPHA_TEXT = "# Alpha\n\nThe alpha paragraph mentions alpha twice.\n"
BETA_TEXT = "# Beta\n\nBeta has a second paragraph.\n\nAnd a third one.\n"
GAMMA_TEXT = "# Gamma\n\nGamma lives in a subdirectory.\n"


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (DB schema,
    content manager, backup store, resource registration) because
    ASGITransport does not trigger it.
    """
    from markshelf.services.resource_service import register_resources

    app = create_app(settings)
    settings.validate_runtime()

    engine, session_factory = create_engine(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.settings = settings
    await init_schema(engine)

    content_manager = ContentManager(
        content_dir=settings.content_dir, max_depth=settings.scan_max_depth
    )
    app.state.content_manager = content_manager
    app.state.backup_store = BackupStore(backup_dir=settings.backup_dir)

    async with session_factory() as session:
        await register_resources(session, content_manager)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await engine.dispose()


@pytest.fixture
def tmp_content_dir(tmp_path: Path) -> Path:
    """Create a served directory with three markdown files, one in a subdirectory."""
    content = tmp_path / "content"
    content.mkdir()
    (content / "alpha.md").write_text(ALPHA_TEXT, encoding="utf-8")
    (content / "beta.md").write_text(BETA_TEXT, encoding="utf-8")
    (content / "notes").mkdir()
    (content / "notes" / "gamma.md").write_text(GAMMA_TEXT, encoding="utf-8")
    return content


@pytest.fixture
def test_settings(tmp_content_dir: Path, tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    db_path = tmp_path / "data" / "test.db"
    db_path.parent.mkdir()
    return Settings(
        debug=False,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        content_dir=tmp_content_dir,
        backup_dir=tmp_path / "backups",
        export_dir=tmp_path / "exports",
    )


@pytest.fixture
def content_manager(tmp_content_dir: Path) -> ContentManager:
    return ContentManager(content_dir=tmp_content_dir)


@pytest.fixture
def backup_store(test_settings: Settings) -> BackupStore:
    return BackupStore(backup_dir=test_settings.backup_dir)


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine, _ = create_engine(test_settings)
    await init_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
