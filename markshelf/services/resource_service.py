"""Resource registration: mirror the served directory into the resources table."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from markshelf.models.resource import RESOURCE_DIR, RESOURCE_FILE, Resource
from markshelf.services.datetime_service import now_utc
from markshelf.services.highlight_store import SqlHighlightStore, new_id

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession

    from markshelf.filesystem.content_manager import ContentManager
    from markshelf.services.highlight_store import ResourceRecord

logger = logging.getLogger(__name__)


async def register_resources(session: AsyncSession, content_manager: ContentManager) -> int:
    """Scan the served directory and insert resources for unseen paths.

    All inserts happen in one transaction. Existing rows are left as they
    are. Returns the number of new resources.
    """
    directories, files = content_manager.scan()
    wanted: dict[str, str] = {str(path): RESOURCE_DIR for path in directories}
    wanted.update({str(path): RESOURCE_FILE for path in files})

    root = str(content_manager.root)
    existing_stmt = select(Resource.path).where(Resource.path.startswith(root, autoescape=True))
    existing = set((await session.execute(existing_stmt)).scalars().all())

    timestamp = now_utc()
    added = 0
    for path, kind in wanted.items():
        if path in existing:
            continue
        session.add(Resource(id=new_id(), path=path, kind=kind, created_at=timestamp))
        added += 1
    await session.commit()
    logger.info(
        "Registered %d new resources (%d directories, %d files scanned)",
        added,
        len(directories),
        len(files),
    )
    return added


async def ensure_resource(store: SqlHighlightStore, path: Path) -> ResourceRecord | None:
    """Return the resource for ``path``, registering an existing file on first sight.

    Returns None when the path is unknown and no such file exists.
    """
    resource = await store.resource_by_path(str(path))
    if resource is not None:
        return resource
    if not path.is_file():
        return None
    logger.info("Registering resource for %s", path)
    return await store.create_resource(str(path), RESOURCE_FILE)
