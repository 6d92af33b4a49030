"""Highlight models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from markshelf.models.base import Base

if TYPE_CHECKING:
    from markshelf.models.resource import Resource


class Highlight(Base):
    """A saved span of raw source text within one resource."""

    __tablename__ = "highlights"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    resource_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_offset: Mapped[int] = mapped_column(Integer, nullable=False)
    end_offset: Mapped[int] = mapped_column(Integer, nullable=False)
    highlighted_text: Mapped[str] = mapped_column(Text, nullable=False)
    # Hash of the file content when the offsets were last confirmed
    content_hash: Mapped[str] = mapped_column(Text, nullable=False)
    is_stale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    resource: Mapped[Resource] = relationship(back_populates="highlights")

    __table_args__ = (
        CheckConstraint("start_offset >= 0", name="ck_highlights_start"),
        CheckConstraint("end_offset > start_offset", name="ck_highlights_span"),
        Index("idx_highlights_resource_id", "resource_id"),
        Index("idx_highlights_is_stale", "is_stale"),
        Index("idx_highlights_created_at", "created_at"),
    )
