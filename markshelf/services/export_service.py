"""Markdown export of collected highlights."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import TYPE_CHECKING

from markshelf.services.datetime_service import format_iso, now_utc

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from pathlib import Path

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class ExportItem:
    """The fields of a highlight that appear in an export."""

    resource_path: str
    highlighted_text: str
    notes: str | None
    created_at: datetime


def _quote(text: str) -> str:
    return "\n".join(f"> {line}" if line else ">" for line in text.split("\n"))


def _format_section(item: ExportItem) -> str:
    section = (
        f"## {PurePath(item.resource_path).name}\n\n"
        f"**Created:** {format_iso(item.created_at)}\n\n"
        f"{_quote(item.highlighted_text)}"
    )
    if item.notes:
        section += f"\n\n**Note:**\n{item.notes}\n"
    return section


def format_export(
    items: Sequence[ExportItem],
    directory_label: str,
    exported_at: datetime | None = None,
) -> str:
    """Render highlights as a Markdown document.

    Pure apart from the default export timestamp; pass ``exported_at`` for
    fully reproducible output.
    """
    timestamp = format_iso(exported_at or now_utc())
    header = (
        "# Highlights Export\n\n"
        f"**Directory:** {directory_label}\n"
        f"**Exported:** {timestamp}\n"
        f"**Total Highlights:** {len(items)}\n"
    )
    sections = SECTION_SEPARATOR.join(_format_section(item) for item in items)
    return header + SECTION_SEPARATOR + sections


def export_filename(directory: str, exported_at: datetime | None = None) -> str:
    """Name exports ``{directory name}-{YYYY-MM-DD}.md``."""
    name = PurePath(directory).name or "highlights"
    return f"{name}-{(exported_at or now_utc()).strftime('%Y-%m-%d')}.md"


def write_export(content: str, filename: str, export_dir: Path) -> Path:
    """Write an export document and return its absolute path."""
    export_dir.mkdir(parents=True, exist_ok=True)
    file_path = (export_dir / filename).resolve()
    file_path.write_text(content, encoding="utf-8")
    logger.info("Wrote highlights export to %s", file_path)
    return file_path
