"""Tracked filesystem resources."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from markshelf.models.base import Base

if TYPE_CHECKING:
    from markshelf.models.highlight import Highlight

RESOURCE_FILE = "file"
RESOURCE_DIR = "dir"


class Resource(Base):
    """A file or directory path observed under the served directory."""

    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    kind: Mapped[str] = mapped_column("type", String, nullable=False, default=RESOURCE_FILE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Populated by the first highlight on this resource
    content_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    backup_path: Mapped[str | None] = mapped_column(Text, nullable=True)

    highlights: Mapped[list[Highlight]] = relationship(
        back_populates="resource",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("type IN ('file', 'dir')", name="ck_resources_type"),
        Index("idx_resources_path", "path"),
    )
