"""Backup archive endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends

from markshelf.api.deps import get_backup_store, require_highlights_enabled
from markshelf.schemas.archive import (
    ArchiveClearResponse,
    BackupDetail,
    BackupListResponse,
    BackupSummary,
)
from markshelf.services.backup_service import BackupStore
from markshelf.services.datetime_service import format_iso

if TYPE_CHECKING:
    from markshelf.services.backup_service import BackupInfo

router = APIRouter(
    prefix="/api/archive",
    tags=["archive"],
    dependencies=[Depends(require_highlights_enabled)],
)


def _summary(info: BackupInfo) -> BackupSummary:
    return BackupSummary(
        name=info.name,
        path=str(info.path),
        resource_id=info.resource_id,
        original_name=info.original_name,
        created_at=format_iso(info.created_at),
        size=info.size,
    )


@router.get("", response_model=BackupListResponse)
async def list_backups_endpoint(
    backup_store: Annotated[BackupStore, Depends(get_backup_store)],
) -> BackupListResponse:
    """List file backups, newest first."""
    backups = backup_store.list_backups()
    return BackupListResponse(
        backups=[_summary(info) for info in backups],
        total_size=sum(info.size for info in backups),
    )


@router.get("/{key}", response_model=BackupDetail)
async def get_backup_endpoint(
    key: str,
    backup_store: Annotated[BackupStore, Depends(get_backup_store)],
) -> BackupDetail:
    """Show one backup by file name or resource id."""
    info = backup_store.get_backup(key)
    return BackupDetail(
        **_summary(info).model_dump(),
        content=backup_store.read_backup(info),
    )


@router.delete("", response_model=ArchiveClearResponse)
async def clear_backups_endpoint(
    backup_store: Annotated[BackupStore, Depends(get_backup_store)],
) -> ArchiveClearResponse:
    """Delete every backup file."""
    result = backup_store.clear()
    return ArchiveClearResponse(count=result.count, bytes_freed=result.bytes_freed)
