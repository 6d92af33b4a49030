"""Highlight workflows: create, list, delete, restore, export and cleanup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from markshelf.exceptions import NotFoundError
from markshelf.filesystem.content_manager import hash_content
from markshelf.models.resource import RESOURCE_FILE
from markshelf.services.datetime_service import now_utc, to_epoch_ms
from markshelf.services.export_service import (
    ExportItem,
    export_filename,
    format_export,
    write_export,
)
from markshelf.services.highlight_store import SqlHighlightStore
from markshelf.services.locator import extract_text, locate, same_modulo_whitespace
from markshelf.services.reconcile_service import (
    MissingTextPolicy,
    delete_invalid_highlights,
    reconcile_highlights,
)
from markshelf.services.resource_service import ensure_resource

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from markshelf.filesystem.content_manager import ContentManager
    from markshelf.services.backup_service import BackupStore
    from markshelf.services.highlight_store import DirectoryHighlight, HighlightRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateHighlightResult:
    id: str
    is_stale: bool
    start_offset: int
    end_offset: int


@dataclass(frozen=True)
class RestoreResult:
    restored_path: Path
    resource_id: str
    created_copy: bool


@dataclass(frozen=True)
class ExportResult:
    file_path: Path
    filename: str
    count: int


@dataclass(frozen=True)
class CleanupResult:
    resources_checked: int
    deleted: int


async def create_highlight(
    session: AsyncSession,
    content_manager: ContentManager,
    backup_store: BackupStore,
    *,
    resource_path: str,
    highlighted_text: str,
    occurrence_index: int | None = None,
    notes: str | None = None,
) -> CreateHighlightResult:
    """Locate a selection in the raw source and persist it as a highlight.

    The file is backed up first if this is its first highlight. The stored
    text is the raw source span, so later exact matches find it again. The
    highlight starts stale when the source span differs from the selection
    by more than whitespace.
    """
    path = content_manager.resolve_path(resource_path)
    store = SqlHighlightStore(session)

    resource = await ensure_resource(store, path)
    if resource is None:
        raise NotFoundError(f"Resource not found: {resource_path}")
    if resource.kind != RESOURCE_FILE:
        raise ValueError(f"Highlights can only be added to files: {resource_path}")

    content = content_manager.read_text(path)
    content_hash = hash_content(content)

    span = locate(content, highlighted_text, occurrence_index)
    if span is None:
        raise ValueError("Highlighted text not found in source file")
    source_text = extract_text(content, span.start, span.end)
    # Always False for spans from locate(): exact matches are identical and
    # normalized matches differ only in whitespace.
    is_stale = not same_modulo_whitespace(source_text, highlighted_text)

    if resource.backup_path is None:
        backup_path = backup_store.backup(path, resource.id, to_epoch_ms(now_utc()))
        await store.set_resource_backup(resource.id, content_hash, str(backup_path))

    highlight_id = await store.create_highlight(
        resource.id,
        span.start,
        span.end,
        source_text,
        content_hash,
        notes,
        is_stale=is_stale,
    )
    if not span.exact:
        logger.info("Highlight %s located by whitespace-normalized match", highlight_id)
    return CreateHighlightResult(
        id=highlight_id,
        is_stale=is_stale,
        start_offset=span.start,
        end_offset=span.end,
    )


async def list_resource_highlights(
    session: AsyncSession,
    content_manager: ContentManager,
    resource_path: str,
) -> list[HighlightRecord]:
    """Return one file's highlights after reconciling them with its current content.

    Highlights whose text is gone are marked stale, never deleted. An
    unreadable file marks all of them stale instead of raising.
    """
    path = content_manager.resolve_path(resource_path)
    store = SqlHighlightStore(session)

    resource = await store.resource_by_path(str(path))
    if resource is None:
        if path.is_file():
            return []
        raise NotFoundError(f"Resource not found: {resource_path}")

    highlights = await store.get_by_resource(resource.id)
    if not highlights:
        return []

    content = content_manager.try_read_text(path)
    report = await reconcile_highlights(
        store, highlights, content, policy=MissingTextPolicy.MARK_STALE
    )
    return report.highlights


async def list_directory_highlights(
    session: AsyncSession,
    content_manager: ContentManager,
    directory: str | None = None,
) -> tuple[Path, list[DirectoryHighlight]]:
    """Return stored highlights under a directory prefix, newest first, unvalidated."""
    prefix = content_manager.resolve_path(directory) if directory else content_manager.root
    store = SqlHighlightStore(session)
    return prefix, await store.get_by_directory_prefix(str(prefix))


async def delete_highlight(session: AsyncSession, highlight_id: str) -> None:
    store = SqlHighlightStore(session)
    if not await store.delete_highlight(highlight_id):
        raise NotFoundError(f"Highlight not found: {highlight_id}")
    logger.info("Deleted highlight %s", highlight_id)


async def restore_from_backup(
    session: AsyncSession,
    backup_store: BackupStore,
    highlight_id: str,
    *,
    use_timestamp: bool = False,
    restored_at: datetime | None = None,
) -> RestoreResult:
    """Restore the file behind a highlight from its first-highlight backup.

    In place by default. With ``use_timestamp`` the backup is written to a new
    sibling stamped with the restore time, which is registered as a new
    resource. An existing sibling is never overwritten.
    """
    store = SqlHighlightStore(session)
    found = await store.get_highlight_with_resource(highlight_id)
    if found is None:
        raise NotFoundError("Highlight or backup not found")
    _, resource = found
    if not resource.backup_path:
        raise NotFoundError("Highlight or backup not found")

    original_path = Path(resource.path)
    try:
        restored_path = backup_store.restore(
            Path(resource.backup_path),
            original_path,
            use_timestamp=use_timestamp,
            timestamp=to_epoch_ms(restored_at or now_utc()),
        )
    except FileExistsError as exc:
        raise ValueError(f"Restore target already exists: {exc.filename}") from exc
    if restored_path == original_path:
        return RestoreResult(
            restored_path=restored_path, resource_id=resource.id, created_copy=False
        )

    copy = await store.resource_by_path(str(restored_path))
    if copy is None:
        copy = await store.create_resource(str(restored_path), RESOURCE_FILE)
    return RestoreResult(restored_path=restored_path, resource_id=copy.id, created_copy=True)


async def export_highlights(
    session: AsyncSession,
    content_manager: ContentManager,
    export_dir: Path,
    directory: str | None = None,
    *,
    exported_at: datetime | None = None,
) -> ExportResult:
    """Write a directory's highlights to a Markdown file in ``export_dir``."""
    prefix, highlights = await list_directory_highlights(session, content_manager, directory)
    if not highlights:
        raise ValueError("No highlights to export")

    exported_at = exported_at or now_utc()
    items = [
        ExportItem(
            resource_path=h.resource_path,
            highlighted_text=h.highlighted_text,
            notes=h.notes,
            created_at=h.created_at,
        )
        for h in highlights
    ]
    content = format_export(items, str(prefix), exported_at)
    filename = export_filename(str(prefix), exported_at)
    file_path = write_export(content, filename, export_dir)
    return ExportResult(file_path=file_path, filename=filename, count=len(items))


async def cleanup_highlights(
    session: AsyncSession,
    content_manager: ContentManager,
    directory: str | None = None,
) -> CleanupResult:
    """Delete every highlight under a directory whose text no longer exists.

    Unlike viewing a single file, misses here are deleted outright, and a file
    that cannot be read loses all of its highlights.
    """
    prefix = content_manager.resolve_path(directory) if directory else content_manager.root
    store = SqlHighlightStore(session)
    resources = await store.resources_with_highlights(str(prefix))

    deleted = 0
    for resource in resources:
        content = content_manager.try_read_text(resource.path)
        deleted += await delete_invalid_highlights(store, resource.id, content)
    logger.info(
        "Highlight cleanup under %s: %d resources checked, %d highlights deleted",
        prefix,
        len(resources),
        deleted,
    )
    return CleanupResult(resources_checked=len(resources), deleted=deleted)
