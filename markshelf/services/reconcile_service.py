"""Reconciliation: keep stored highlight offsets honest against current file content.

Each highlight is checked whenever its resource is read:

- hash unchanged and not stale: offsets are trusted as stored;
- otherwise the stored text is searched for again (first occurrence, exact
  match first, whitespace-normalized second). A hit moves the offsets and
  clears the stale flag; a miss applies the ``MissingTextPolicy``.

Call sites pick the policy explicitly. Viewing a single resource marks misses
stale so the reader can still see and restore them; the bulk cleanup pass
deletes them so permanently dead rows do not pile up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from markshelf.filesystem.content_manager import hash_content
from markshelf.services.locator import TextSpan, locate

if TYPE_CHECKING:
    from markshelf.services.highlight_store import HighlightRecord, HighlightStore

logger = logging.getLogger(__name__)


class MissingTextPolicy(StrEnum):
    """What to do with a highlight whose text is gone from the file."""

    MARK_STALE = "mark_stale"
    DELETE = "delete"


class Outcome(StrEnum):
    """Result of checking one highlight."""

    FRESH = "fresh"
    RELOCATED = "relocated"
    STALE = "stale"
    DELETED = "deleted"


@dataclass(frozen=True)
class ValidationResult:
    """Pure verdict for one highlight against one version of a file."""

    is_valid: bool
    span: TextSpan | None = None
    new_content_hash: str | None = None

    @property
    def relocated(self) -> bool:
        return self.span is not None

    @property
    def new_start_offset(self) -> int | None:
        return self.span.start if self.span is not None else None

    @property
    def new_end_offset(self) -> int | None:
        return self.span.end if self.span is not None else None


@dataclass
class ReconcileReport:
    """Highlights that survived a pass, plus per-outcome counts."""

    highlights: list[HighlightRecord] = field(default_factory=list)
    outcomes: dict[str, Outcome] = field(default_factory=dict)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for value in self.outcomes.values() if value == outcome)


def validate_highlight(
    *,
    content: str,
    content_hash: str,
    highlighted_text: str,
    is_stale: bool = False,
    current_hash: str | None = None,
) -> ValidationResult:
    """Decide whether a highlight still matches ``content``.

    ``current_hash`` may be passed to avoid re-hashing the same content for
    every highlight of a file. A stale highlight is always searched again, so
    it recovers if its text comes back.
    """
    if current_hash is None:
        current_hash = hash_content(content)

    if current_hash == content_hash and not is_stale:
        return ValidationResult(is_valid=True)

    span = locate(content, highlighted_text)
    if span is None:
        return ValidationResult(is_valid=False)

    return ValidationResult(is_valid=True, span=span, new_content_hash=current_hash)


async def _handle_missing(
    store: HighlightStore,
    highlight: HighlightRecord,
    policy: MissingTextPolicy,
    report: ReconcileReport,
) -> None:
    if policy is MissingTextPolicy.DELETE:
        await store.delete_highlight(highlight.id)
        report.outcomes[highlight.id] = Outcome.DELETED
        return
    if not highlight.is_stale:
        await store.mark_stale(highlight.id)
        highlight.is_stale = True
    report.outcomes[highlight.id] = Outcome.STALE
    report.highlights.append(highlight)


async def reconcile_highlights(
    store: HighlightStore,
    highlights: list[HighlightRecord],
    content: str | None,
    policy: MissingTextPolicy = MissingTextPolicy.MARK_STALE,
) -> ReconcileReport:
    """Validate ``highlights`` against ``content`` and persist the verdicts.

    ``content`` is None when the file could not be read; then every highlight
    is handled as missing without attempting relocation. Records in the
    returned report are updated in place to match what was stored.
    """
    report = ReconcileReport()
    current_hash = hash_content(content) if content is not None else None

    for highlight in highlights:
        if content is None or current_hash is None:
            await _handle_missing(store, highlight, policy, report)
            continue

        result = validate_highlight(
            content=content,
            content_hash=highlight.content_hash,
            highlighted_text=highlight.highlighted_text,
            is_stale=highlight.is_stale,
            current_hash=current_hash,
        )
        if not result.is_valid:
            logger.debug("Highlight %s no longer matches its file", highlight.id)
            await _handle_missing(store, highlight, policy, report)
            continue

        span = result.span
        if span is not None:
            await store.update_offsets(highlight.id, span.start, span.end, current_hash)
            highlight.start_offset = span.start
            highlight.end_offset = span.end
            highlight.content_hash = current_hash
            highlight.is_stale = False
            report.outcomes[highlight.id] = Outcome.RELOCATED
            if not span.exact:
                logger.info(
                    "Highlight %s relocated by whitespace-normalized match", highlight.id
                )
        else:
            report.outcomes[highlight.id] = Outcome.FRESH
        report.highlights.append(highlight)

    report.highlights.sort(key=lambda h: h.start_offset)
    return report


async def delete_invalid_highlights(
    store: HighlightStore, resource_id: str, content: str | None
) -> int:
    """Bulk cleanup for one resource: delete highlights whose text is gone.

    Returns the number of deleted highlights.
    """
    highlights = await store.get_by_resource(resource_id)
    report = await reconcile_highlights(
        store, highlights, content, policy=MissingTextPolicy.DELETE
    )
    deleted = report.count(Outcome.DELETED)
    if deleted:
        logger.info("Deleted %d invalid highlights from resource %s", deleted, resource_id)
    return deleted
