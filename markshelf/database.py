"""Database engine, session factory and schema setup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection

    from markshelf.config import Settings

logger = logging.getLogger(__name__)

# Columns added after the first schema version: (table, column, DDL type).
_LATE_COLUMNS: tuple[tuple[str, str, str], ...] = (
    ("resources", "content_hash", "TEXT"),
    ("resources", "backup_path", "TEXT"),
    ("highlights", "notes", "TEXT"),
)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if not database_url.startswith("sqlite") or "///" not in database_url:
        return
    db_path = database_url.split("///", 1)[-1]
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def create_engine(
    settings: Settings,
) -> tuple[
    AsyncEngine,
    async_sessionmaker[AsyncSession],
]:
    """Create async engine and session factory.

    Returns (engine, session_factory) tuple.
    """
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
    )
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


def _is_schema_conflict(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return "duplicate column" in message or "already exists" in message


async def _add_missing_columns(conn: AsyncConnection) -> None:
    for table, column, ddl_type in _LATE_COLUMNS:
        result = await conn.execute(text(f"PRAGMA table_info({table})"))
        columns = {str(row[1]) for row in result}
        if column in columns:
            continue
        try:
            async with conn.begin_nested():
                await conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl_type}"))
        except OperationalError as exc:
            if not _is_schema_conflict(exc):
                raise
            logger.debug("Column %s.%s already present: %s", table, column, exc)
            continue
        logger.warning("Added missing %s.%s column to existing database", table, column)


async def init_schema(engine: AsyncEngine) -> None:
    """Ensure all tables, indexes and late-added columns exist.

    Safe to call on every startup: existing tables are left untouched and
    duplicate-column errors from concurrent or repeated setup are ignored.
    """
    from markshelf.models.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await _add_missing_columns(conn)
