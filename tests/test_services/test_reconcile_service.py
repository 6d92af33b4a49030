"""Tests for highlight reconciliation against changing file content.

Runs against an in-memory store so the engine is exercised without a database.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from markshelf.filesystem.content_manager import hash_content
from markshelf.services.datetime_service import now_utc
from markshelf.services.highlight_store import HighlightRecord, HighlightStore
from markshelf.services.reconcile_service import (
    MissingTextPolicy,
    Outcome,
    delete_invalid_highlights,
    reconcile_highlights,
    validate_highlight,
)

RESOURCE_ID = "resource-1"
ORIGINAL = "# Title\n\nThe alpha paragraph.\n\nClosing words.\n"


class InMemoryHighlightStore:
    """Dict-backed ``HighlightStore`` that records every write."""

    def __init__(self, records: list[HighlightRecord]) -> None:
        self.records = {record.id: replace(record) for record in records}
        self.calls: list[tuple[str, str]] = []

    async def get_by_resource(self, resource_id: str) -> list[HighlightRecord]:
        matching = [replace(r) for r in self.records.values() if r.resource_id == resource_id]
        return sorted(matching, key=lambda r: r.start_offset)

    async def mark_stale(self, highlight_id: str) -> None:
        self.calls.append(("mark_stale", highlight_id))
        self.records[highlight_id].is_stale = True

    async def update_offsets(
        self, highlight_id: str, start_offset: int, end_offset: int, content_hash: str
    ) -> None:
        self.calls.append(("update_offsets", highlight_id))
        record = self.records[highlight_id]
        record.start_offset = start_offset
        record.end_offset = end_offset
        record.content_hash = content_hash
        record.is_stale = False

    async def delete_highlight(self, highlight_id: str) -> bool:
        self.calls.append(("delete", highlight_id))
        return self.records.pop(highlight_id, None) is not None


def make_record(
    highlight_id: str,
    text: str,
    content: str,
    *,
    start: int | None = None,
    is_stale: bool = False,
) -> HighlightRecord:
    offset = content.index(text) if start is None else start
    timestamp = now_utc()
    return HighlightRecord(
        id=highlight_id,
        resource_id=RESOURCE_ID,
        start_offset=offset,
        end_offset=offset + len(text),
        highlighted_text=text,
        content_hash=hash_content(content),
        is_stale=is_stale,
        notes=None,
        created_at=timestamp,
        updated_at=timestamp,
    )


def test_fake_store_satisfies_protocol() -> None:
    assert isinstance(InMemoryHighlightStore([]), HighlightStore)


class TestValidateHighlight:
    def test_unchanged_content_is_trusted(self) -> None:
        result = validate_highlight(
            content=ORIGINAL,
            content_hash=hash_content(ORIGINAL),
            highlighted_text="does not even matter",
        )
        assert result.is_valid
        assert not result.relocated
        assert result.new_start_offset is None

    def test_changed_content_relocates(self) -> None:
        edited = "Preface.\n\n" + ORIGINAL
        result = validate_highlight(
            content=edited,
            content_hash=hash_content(ORIGINAL),
            highlighted_text="alpha paragraph",
        )
        assert result.is_valid
        assert result.relocated
        assert result.new_start_offset == edited.index("alpha paragraph")
        assert result.new_end_offset == edited.index("alpha paragraph") + len("alpha paragraph")
        assert result.new_content_hash == hash_content(edited)

    def test_changed_content_without_text_is_invalid(self) -> None:
        result = validate_highlight(
            content="Something else entirely.",
            content_hash=hash_content(ORIGINAL),
            highlighted_text="alpha paragraph",
        )
        assert not result.is_valid
        assert result.span is None

    def test_stale_highlight_is_searched_even_when_hash_matches(self) -> None:
        result = validate_highlight(
            content=ORIGINAL,
            content_hash=hash_content(ORIGINAL),
            highlighted_text="Closing words",
            is_stale=True,
        )
        assert result.relocated
        assert result.new_start_offset == ORIGINAL.index("Closing words")


class TestReconcileMarkStale:
    @pytest.mark.asyncio
    async def test_unchanged_file_makes_no_writes(self) -> None:
        record = make_record("h1", "alpha paragraph", ORIGINAL)
        store = InMemoryHighlightStore([record])

        report = await reconcile_highlights(store, [record], ORIGINAL)

        assert report.outcomes == {"h1": Outcome.FRESH}
        assert report.highlights == [record]
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_drift_relocates_and_updates_hash(self) -> None:
        record = make_record("h1", "alpha paragraph", ORIGINAL)
        store = InMemoryHighlightStore([record])
        edited = "A brand new opening paragraph.\n\n" + ORIGINAL

        report = await reconcile_highlights(store, [record], edited)

        assert report.outcomes == {"h1": Outcome.RELOCATED}
        updated = report.highlights[0]
        assert updated.start_offset == edited.index("alpha paragraph")
        assert edited[updated.start_offset : updated.end_offset] == "alpha paragraph"
        assert updated.content_hash == hash_content(edited)
        assert store.records["h1"].start_offset == updated.start_offset

    @pytest.mark.asyncio
    async def test_rewrapped_text_is_relocated_by_normalized_match(self) -> None:
        content = "One two three four five.\n"
        record = make_record("h1", "two three four", content)
        store = InMemoryHighlightStore([record])
        edited = "One two\nthree   four five.\n"

        report = await reconcile_highlights(store, [record], edited)

        assert report.outcomes == {"h1": Outcome.RELOCATED}
        updated = report.highlights[0]
        assert edited[updated.start_offset : updated.end_offset] == "two\nthree   four"

    @pytest.mark.asyncio
    async def test_duplicate_snippet_relocates_to_first_occurrence(self) -> None:
        content = "alpha here, alpha there\n"
        second = content.rindex("alpha")
        record = make_record("h1", "alpha", content, start=second)
        store = InMemoryHighlightStore([record])
        edited = "Intro.\n" + content

        report = await reconcile_highlights(store, [record], edited)

        assert report.highlights[0].start_offset == edited.index("alpha")
        assert report.highlights[0].start_offset != second + len("Intro.\n")

    @pytest.mark.asyncio
    async def test_missing_text_marks_stale_and_keeps_offsets(self) -> None:
        record = make_record("h1", "alpha paragraph", ORIGINAL)
        store = InMemoryHighlightStore([record])

        report = await reconcile_highlights(store, [record], "# Title\n\nRewritten.\n")

        assert report.outcomes == {"h1": Outcome.STALE}
        stale = report.highlights[0]
        assert stale.is_stale
        assert (stale.start_offset, stale.end_offset) == (record.start_offset, record.end_offset)
        assert store.calls == [("mark_stale", "h1")]

    @pytest.mark.asyncio
    async def test_already_stale_highlight_is_not_marked_again(self) -> None:
        record = make_record("h1", "alpha paragraph", ORIGINAL, is_stale=True)
        store = InMemoryHighlightStore([record])

        report = await reconcile_highlights(store, [record], "Rewritten.\n")

        assert report.outcomes == {"h1": Outcome.STALE}
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_stale_highlight_recovers_when_text_returns(self) -> None:
        record = make_record("h1", "alpha paragraph", ORIGINAL, is_stale=True)
        store = InMemoryHighlightStore([record])

        report = await reconcile_highlights(store, [record], ORIGINAL)

        assert report.outcomes == {"h1": Outcome.RELOCATED}
        assert not report.highlights[0].is_stale
        assert not store.records["h1"].is_stale

    @pytest.mark.asyncio
    async def test_unreadable_file_marks_everything_stale(self) -> None:
        records = [
            make_record("h1", "alpha paragraph", ORIGINAL),
            make_record("h2", "Closing words", ORIGINAL),
        ]
        store = InMemoryHighlightStore(records)

        report = await reconcile_highlights(store, records, None)

        assert report.count(Outcome.STALE) == 2
        assert all(h.is_stale for h in report.highlights)

    @pytest.mark.asyncio
    async def test_results_are_sorted_by_start(self) -> None:
        records = [
            make_record("late", "Closing words", ORIGINAL),
            make_record("early", "alpha paragraph", ORIGINAL),
        ]
        store = InMemoryHighlightStore(records)

        report = await reconcile_highlights(store, records, ORIGINAL)

        assert [h.id for h in report.highlights] == ["early", "late"]


class TestReconcileDelete:
    @pytest.mark.asyncio
    async def test_missing_text_is_deleted(self) -> None:
        kept = make_record("kept", "Closing words", ORIGINAL)
        gone = make_record("gone", "alpha paragraph", ORIGINAL)
        store = InMemoryHighlightStore([kept, gone])
        edited = "# Title\n\nClosing words.\n"

        report = await reconcile_highlights(
            store, [kept, gone], edited, policy=MissingTextPolicy.DELETE
        )

        assert report.outcomes == {"kept": Outcome.RELOCATED, "gone": Outcome.DELETED}
        assert [h.id for h in report.highlights] == ["kept"]
        assert set(store.records) == {"kept"}

    @pytest.mark.asyncio
    async def test_unreadable_file_deletes_everything(self) -> None:
        records = [make_record("h1", "alpha paragraph", ORIGINAL)]
        store = InMemoryHighlightStore(records)

        report = await reconcile_highlights(
            store, records, None, policy=MissingTextPolicy.DELETE
        )

        assert report.count(Outcome.DELETED) == 1
        assert store.records == {}

    @pytest.mark.asyncio
    async def test_delete_invalid_highlights_counts_deletions(self) -> None:
        store = InMemoryHighlightStore(
            [
                make_record("h1", "alpha paragraph", ORIGINAL),
                make_record("h2", "Closing words", ORIGINAL),
                make_record("h3", "Title", ORIGINAL),
            ]
        )

        deleted = await delete_invalid_highlights(store, RESOURCE_ID, "# Title\n\nNothing else.\n")

        assert deleted == 2
        assert set(store.records) == {"h3"}
