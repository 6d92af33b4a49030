"""Shared API dependencies: DB session, settings, content and backup stores."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from markshelf.config import Settings
from markshelf.filesystem.content_manager import ContentManager
from markshelf.services.backup_service import BackupStore


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_content_manager(request: Request) -> ContentManager:
    """Get content manager from app state."""
    cm: ContentManager = request.app.state.content_manager
    return cm


def get_backup_store(request: Request) -> BackupStore:
    store: BackupStore = request.app.state.backup_store
    return store


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def require_highlights_enabled(
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """Hide highlight and archive routes when the feature is switched off."""
    if not settings.highlights_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Highlights are disabled",
        )
