"""Datetime helpers: UTC clock, ISO output and epoch-millisecond conversion."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MILLISECOND = timedelta(milliseconds=1)


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(UTC)


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for JSON serialization."""
    return ensure_aware(dt).isoformat()


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to integer milliseconds since the Unix epoch."""
    return (ensure_aware(dt) - _EPOCH) // _MILLISECOND


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + value * _MILLISECOND


def format_compact_timestamp(timestamp_ms: int) -> str:
    """Format epoch milliseconds as a filename-safe ISO string.

    Example: ``2026-01-05T14-03-09-512Z``.
    """
    dt = from_epoch_ms(timestamp_ms)
    return dt.strftime("%Y-%m-%dT%H-%M-%S-") + f"{dt.microsecond // 1000:03d}Z"
