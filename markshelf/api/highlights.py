"""Highlight API endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from markshelf.api.deps import (
    get_backup_store,
    get_content_manager,
    get_session,
    get_settings,
    require_highlights_enabled,
)
from markshelf.config import Settings
from markshelf.filesystem.content_manager import ContentManager
from markshelf.schemas.highlight import (
    CleanupRequest,
    CleanupResponse,
    DirectoryHighlightResponse,
    DirectoryHighlightsResponse,
    ExportRequest,
    ExportResponse,
    HighlightCreate,
    HighlightCreateResponse,
    HighlightResponse,
    ResourceHighlightsResponse,
    RestoreRequest,
    RestoreResponse,
)
from markshelf.services import highlight_service
from markshelf.services.backup_service import BackupStore
from markshelf.services.datetime_service import format_iso

if TYPE_CHECKING:
    from markshelf.services.highlight_store import DirectoryHighlight, HighlightRecord

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/highlights",
    tags=["highlights"],
    dependencies=[Depends(require_highlights_enabled)],
)


def _highlight_response(record: HighlightRecord) -> HighlightResponse:
    return HighlightResponse(
        id=record.id,
        resource_id=record.resource_id,
        start_offset=record.start_offset,
        end_offset=record.end_offset,
        highlighted_text=record.highlighted_text,
        content_hash=record.content_hash,
        is_stale=record.is_stale,
        notes=record.notes,
        created_at=format_iso(record.created_at),
        updated_at=format_iso(record.updated_at),
    )


def _directory_highlight_response(record: DirectoryHighlight) -> DirectoryHighlightResponse:
    return DirectoryHighlightResponse(
        **_highlight_response(record).model_dump(),
        resource_path=record.resource_path,
    )


@router.post("", response_model=HighlightCreateResponse, status_code=201)
async def create_highlight_endpoint(
    body: HighlightCreate,
    session: Annotated[AsyncSession, Depends(get_session)],
    content_manager: Annotated[ContentManager, Depends(get_content_manager)],
    backup_store: Annotated[BackupStore, Depends(get_backup_store)],
) -> HighlightCreateResponse:
    """Highlight a selection of a file; backs the file up on its first highlight."""
    result = await highlight_service.create_highlight(
        session,
        content_manager,
        backup_store,
        resource_path=body.resource_path,
        highlighted_text=body.highlighted_text,
        occurrence_index=body.occurrence_index,
        notes=body.notes,
    )
    return HighlightCreateResponse(
        id=result.id,
        is_stale=result.is_stale,
        start_offset=result.start_offset,
        end_offset=result.end_offset,
    )


@router.get("/resource", response_model=ResourceHighlightsResponse)
async def resource_highlights_endpoint(
    session: Annotated[AsyncSession, Depends(get_session)],
    content_manager: Annotated[ContentManager, Depends(get_content_manager)],
    path: str = Query(..., min_length=1),
) -> ResourceHighlightsResponse:
    """List one file's highlights, reconciled against its current content."""
    highlights = await highlight_service.list_resource_highlights(session, content_manager, path)
    return ResourceHighlightsResponse(highlights=[_highlight_response(h) for h in highlights])


@router.get("/directory", response_model=DirectoryHighlightsResponse)
async def directory_highlights_endpoint(
    session: Annotated[AsyncSession, Depends(get_session)],
    content_manager: Annotated[ContentManager, Depends(get_content_manager)],
    path: str | None = Query(None),
) -> DirectoryHighlightsResponse:
    """List stored highlights under a directory, newest first."""
    prefix, highlights = await highlight_service.list_directory_highlights(
        session, content_manager, path
    )
    return DirectoryHighlightsResponse(
        directory=str(prefix),
        highlights=[_directory_highlight_response(h) for h in highlights],
    )


@router.post("/export", response_model=ExportResponse)
async def export_highlights_endpoint(
    session: Annotated[AsyncSession, Depends(get_session)],
    content_manager: Annotated[ContentManager, Depends(get_content_manager)],
    settings: Annotated[Settings, Depends(get_settings)],
    body: ExportRequest | None = None,
) -> ExportResponse:
    """Write a Markdown export of a directory's highlights."""
    result = await highlight_service.export_highlights(
        session,
        content_manager,
        settings.export_dir,
        body.directory if body is not None else None,
    )
    return ExportResponse(
        file_path=str(result.file_path), filename=result.filename, count=result.count
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_highlights_endpoint(
    session: Annotated[AsyncSession, Depends(get_session)],
    content_manager: Annotated[ContentManager, Depends(get_content_manager)],
    body: CleanupRequest | None = None,
) -> CleanupResponse:
    """Delete highlights whose text is gone from their files."""
    result = await highlight_service.cleanup_highlights(
        session, content_manager, body.directory if body is not None else None
    )
    return CleanupResponse(resources_checked=result.resources_checked, deleted=result.deleted)


@router.delete("/{highlight_id}", status_code=204)
async def delete_highlight_endpoint(
    highlight_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    await highlight_service.delete_highlight(session, highlight_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{highlight_id}/restore", response_model=RestoreResponse)
async def restore_highlight_endpoint(
    highlight_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    backup_store: Annotated[BackupStore, Depends(get_backup_store)],
    body: RestoreRequest | None = None,
) -> RestoreResponse:
    """Restore the highlighted file from its backup, in place or as a timestamped copy."""
    result = await highlight_service.restore_from_backup(
        session,
        backup_store,
        highlight_id,
        use_timestamp=body.use_timestamp if body is not None else False,
    )
    return RestoreResponse(
        restored_path=str(result.restored_path),
        resource_id=result.resource_id,
        created_copy=result.created_copy,
    )
