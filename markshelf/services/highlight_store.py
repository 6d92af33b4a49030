"""Highlight record store: the only code that reads or writes highlight and resource rows.

``HighlightStore`` is the narrow interface the reconciliation engine depends
on; ``SqlHighlightStore`` is the SQLAlchemy adapter used by the application.
Every mutating call commits on its own.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import delete, func, select, update

from markshelf.models.highlight import Highlight
from markshelf.models.resource import RESOURCE_DIR, RESOURCE_FILE, Resource
from markshelf.services.datetime_service import ensure_aware, now_utc

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class ResourceRecord:
    """Plain copy of a ``resources`` row."""

    id: str
    path: str
    kind: str
    created_at: datetime
    content_hash: str | None
    backup_path: str | None


@dataclass
class HighlightRecord:
    """Plain copy of a ``highlights`` row. Mutated in place by reconciliation."""

    id: str
    resource_id: str
    start_offset: int
    end_offset: int
    highlighted_text: str
    content_hash: str
    is_stale: bool
    notes: str | None
    created_at: datetime
    updated_at: datetime


@dataclass
class DirectoryHighlight(HighlightRecord):
    """Highlight joined with the path of its resource."""

    resource_path: str


@dataclass(frozen=True)
class StoreCounts:
    resources: int
    highlights: int
    stale_highlights: int


def new_id() -> str:
    return str(uuid.uuid4())


def validate_offsets(start_offset: int, end_offset: int) -> None:
    """Raise ValueError unless ``0 <= start_offset < end_offset``."""
    if start_offset < 0:
        raise ValueError(f"start_offset must be >= 0, got {start_offset}")
    if end_offset <= start_offset:
        raise ValueError(
            f"end_offset must be greater than start_offset ({end_offset} <= {start_offset})"
        )


def _resource_record(row: Resource) -> ResourceRecord:
    return ResourceRecord(
        id=row.id,
        path=row.path,
        kind=row.kind,
        created_at=ensure_aware(row.created_at),
        content_hash=row.content_hash,
        backup_path=row.backup_path,
    )


def _highlight_fields(row: Highlight) -> dict[str, object]:
    return {
        "id": row.id,
        "resource_id": row.resource_id,
        "start_offset": row.start_offset,
        "end_offset": row.end_offset,
        "highlighted_text": row.highlighted_text,
        "content_hash": row.content_hash,
        "is_stale": bool(row.is_stale),
        "notes": row.notes,
        "created_at": ensure_aware(row.created_at),
        "updated_at": ensure_aware(row.updated_at),
    }


def _highlight_record(row: Highlight) -> HighlightRecord:
    return HighlightRecord(**_highlight_fields(row))  # type: ignore[arg-type]


@runtime_checkable
class HighlightStore(Protocol):
    """Storage operations needed to reconcile a resource's highlights."""

    async def get_by_resource(self, resource_id: str) -> list[HighlightRecord]:
        """Highlights of one resource, ordered by start offset."""
        ...

    async def mark_stale(self, highlight_id: str) -> None:
        """Flag a highlight as stale, keeping its offsets."""
        ...

    async def update_offsets(
        self, highlight_id: str, start_offset: int, end_offset: int, content_hash: str
    ) -> None:
        """Store relocated offsets and the hash they were confirmed against."""
        ...

    async def delete_highlight(self, highlight_id: str) -> bool:
        """Delete a highlight. Returns True if it existed."""
        ...


class SqlHighlightStore:
    """``HighlightStore`` backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # Resources

    async def resource_by_path(self, path: str) -> ResourceRecord | None:
        stmt = (
            select(Resource)
            .where(Resource.path == path)
            .execution_options(populate_existing=True)
        )
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        return _resource_record(row) if row is not None else None

    async def get_resource(self, resource_id: str) -> ResourceRecord | None:
        row = await self.session.get(Resource, resource_id, populate_existing=True)
        return _resource_record(row) if row is not None else None

    async def create_resource(
        self,
        path: str,
        kind: str = RESOURCE_FILE,
        *,
        resource_id: str | None = None,
    ) -> ResourceRecord:
        """Insert a resource row. Path uniqueness is enforced by the database."""
        if kind not in (RESOURCE_FILE, RESOURCE_DIR):
            raise ValueError(f"Invalid resource type: {kind}")
        row = Resource(
            id=resource_id or new_id(),
            path=path,
            kind=kind,
            created_at=now_utc(),
        )
        self.session.add(row)
        await self.session.commit()
        return _resource_record(row)

    async def set_resource_backup(
        self, resource_id: str, content_hash: str, backup_path: str
    ) -> None:
        stmt = (
            update(Resource)
            .where(Resource.id == resource_id)
            .values(content_hash=content_hash, backup_path=backup_path)
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def delete_resource(self, resource_id: str) -> bool:
        """Delete a resource; its highlights go with it (ON DELETE CASCADE)."""
        result = await self.session.execute(delete(Resource).where(Resource.id == resource_id))
        await self.session.commit()
        return bool(result.rowcount)

    async def resources_with_highlights(self, path_prefix: str) -> list[ResourceRecord]:
        """Resources under ``path_prefix`` that own at least one highlight."""
        stmt = (
            select(Resource)
            .where(Resource.path.startswith(path_prefix, autoescape=True))
            .where(Resource.id.in_(select(Highlight.resource_id)))
            .order_by(Resource.path)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [_resource_record(row) for row in rows]

    # Highlights

    async def create_highlight(
        self,
        resource_id: str,
        start_offset: int,
        end_offset: int,
        highlighted_text: str,
        content_hash: str,
        notes: str | None = None,
        *,
        is_stale: bool = False,
        created_at: datetime | None = None,
    ) -> str:
        """Insert a highlight and return its id."""
        validate_offsets(start_offset, end_offset)
        timestamp = created_at or now_utc()
        row = Highlight(
            id=new_id(),
            resource_id=resource_id,
            start_offset=start_offset,
            end_offset=end_offset,
            highlighted_text=highlighted_text,
            content_hash=content_hash,
            is_stale=is_stale,
            notes=notes or None,
            created_at=timestamp,
            updated_at=timestamp,
        )
        self.session.add(row)
        await self.session.commit()
        logger.debug("Created highlight %s on resource %s", row.id, resource_id)
        return row.id

    async def get_highlight(self, highlight_id: str) -> HighlightRecord | None:
        row = await self.session.get(Highlight, highlight_id, populate_existing=True)
        return _highlight_record(row) if row is not None else None

    async def get_highlight_with_resource(
        self, highlight_id: str
    ) -> tuple[HighlightRecord, ResourceRecord] | None:
        stmt = (
            select(Highlight, Resource)
            .join(Resource, Highlight.resource_id == Resource.id)
            .where(Highlight.id == highlight_id)
        )
        row = (await self.session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _highlight_record(row[0]), _resource_record(row[1])

    async def get_by_resource(self, resource_id: str) -> list[HighlightRecord]:
        stmt = (
            select(Highlight)
            .where(Highlight.resource_id == resource_id)
            .order_by(Highlight.start_offset.asc(), Highlight.created_at.asc())
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [_highlight_record(row) for row in rows]

    async def get_by_directory_prefix(self, path_prefix: str) -> list[DirectoryHighlight]:
        """Highlights of every resource whose path starts with ``path_prefix``, newest first."""
        stmt = (
            select(Highlight, Resource.path)
            .join(Resource, Highlight.resource_id == Resource.id)
            .where(Resource.path.startswith(path_prefix, autoescape=True))
            .order_by(Highlight.created_at.desc())
        )
        rows = (await self.session.execute(stmt)).all()
        return [
            DirectoryHighlight(
                **_highlight_fields(row[0]),  # type: ignore[arg-type]
                resource_path=row[1],
            )
            for row in rows
        ]

    async def directory_has_highlights(self, path_prefix: str) -> bool:
        stmt = (
            select(func.count())
            .select_from(Highlight)
            .join(Resource, Highlight.resource_id == Resource.id)
            .where(Resource.path.startswith(path_prefix, autoescape=True))
        )
        count = (await self.session.execute(stmt)).scalar() or 0
        return count > 0

    async def mark_stale(self, highlight_id: str) -> None:
        stmt = (
            update(Highlight)
            .where(Highlight.id == highlight_id)
            .values(is_stale=True, updated_at=now_utc())
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def update_offsets(
        self, highlight_id: str, start_offset: int, end_offset: int, content_hash: str
    ) -> None:
        validate_offsets(start_offset, end_offset)
        stmt = (
            update(Highlight)
            .where(Highlight.id == highlight_id)
            .values(
                start_offset=start_offset,
                end_offset=end_offset,
                content_hash=content_hash,
                is_stale=False,
                updated_at=now_utc(),
            )
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def delete_highlight(self, highlight_id: str) -> bool:
        result = await self.session.execute(delete(Highlight).where(Highlight.id == highlight_id))
        await self.session.commit()
        return bool(result.rowcount)

    # Maintenance

    async def counts(self) -> StoreCounts:
        resources = (
            await self.session.execute(select(func.count()).select_from(Resource))
        ).scalar()
        highlights = (
            await self.session.execute(select(func.count()).select_from(Highlight))
        ).scalar()
        stale = (
            await self.session.execute(
                select(func.count()).select_from(Highlight).where(Highlight.is_stale.is_(True))
            )
        ).scalar()
        return StoreCounts(
            resources=resources or 0,
            highlights=highlights or 0,
            stale_highlights=stale or 0,
        )

    async def clear(self) -> StoreCounts:
        """Delete every highlight and resource row. Returns what was removed."""
        before = await self.counts()
        await self.session.execute(delete(Highlight))
        await self.session.execute(delete(Resource))
        await self.session.commit()
        logger.info(
            "Cleared %d resources and %d highlights", before.resources, before.highlights
        )
        return before
