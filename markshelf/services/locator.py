"""Occurrence locator: find highlighted text inside raw Markdown source.

Two passes are tried in order:

1. Exact substring search. Every start index is collected left to right
   (overlapping occurrences included) and ``occurrence_index`` picks one.
2. Whitespace-normalized search, used only when the exact pass finds nothing.
   Runs of whitespace collapse to a single space in both strings before
   searching, which recovers text that survived a re-wrap or re-indent. Spans
   found this way are mapped back to raw offsets and flagged ``exact=False``.

A normalized search that yields several candidates is ambiguous unless the
caller passes an explicit ``occurrence_index``; ambiguity returns ``None``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_NON_WHITESPACE_RE = re.compile(r"\S+")


@dataclass(frozen=True)
class TextSpan:
    """Half-open ``[start, end)`` span of raw source text."""

    start: int
    end: int
    exact: bool = True

    @property
    def length(self) -> int:
        return self.end - self.start


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim both ends."""
    return " ".join(_NON_WHITESPACE_RE.findall(text))


def same_modulo_whitespace(left: str, right: str) -> bool:
    """True when two strings differ at most in whitespace."""
    return normalize_whitespace(left) == normalize_whitespace(right)


def extract_text(content: str, start: int, end: int) -> str:
    """Return the raw text between two offsets."""
    return content[start:end]


def find_occurrences(content: str, needle: str) -> list[int]:
    """Return every start index of ``needle`` in ``content``, left to right."""
    if not needle:
        return []
    positions: list[int] = []
    index = content.find(needle)
    while index != -1:
        positions.append(index)
        index = content.find(needle, index + 1)
    return positions


def _normalize_with_offsets(text: str) -> tuple[str, list[int]]:
    """Normalize whitespace and record the raw index of every normalized character."""
    pieces: list[str] = []
    raw_index: list[int] = []
    previous_end: int | None = None
    for match in _NON_WHITESPACE_RE.finditer(text):
        if previous_end is not None:
            pieces.append(" ")
            raw_index.append(previous_end)
        pieces.append(match.group())
        raw_index.extend(range(match.start(), match.end()))
        previous_end = match.end()
    return "".join(pieces), raw_index


def _pick(positions: list[int], occurrence_index: int) -> int | None:
    if occurrence_index < 0 or occurrence_index >= len(positions):
        return None
    return positions[occurrence_index]


def locate(content: str, needle: str, occurrence_index: int | None = None) -> TextSpan | None:
    """Locate ``needle`` in ``content``.

    ``occurrence_index`` is zero-based. When omitted, the first exact
    occurrence is used, and a normalized match must be unique.
    Returns ``None`` when the text is absent, the index is out of range, or a
    normalized match is ambiguous.
    """
    if not needle or not needle.strip():
        return None

    exact_positions = find_occurrences(content, needle)
    if exact_positions:
        start = _pick(exact_positions, occurrence_index or 0)
        if start is None:
            return None
        return TextSpan(start=start, end=start + len(needle), exact=True)

    normalized_needle = normalize_whitespace(needle)
    normalized_content, raw_index = _normalize_with_offsets(content)
    fuzzy_positions = find_occurrences(normalized_content, normalized_needle)
    if not fuzzy_positions:
        return None
    if occurrence_index is None and len(fuzzy_positions) > 1:
        return None
    normalized_start = _pick(fuzzy_positions, occurrence_index or 0)
    if normalized_start is None:
        return None
    normalized_end = normalized_start + len(normalized_needle)
    return TextSpan(
        start=raw_index[normalized_start],
        end=raw_index[normalized_end - 1] + 1,
        exact=False,
    )
