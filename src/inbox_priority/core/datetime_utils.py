"""Datetime helpers shared across the pipeline."""

from __future__ import annotations

from datetime import UTC, datetime

__all__ = [
    "ensure_utc",
    "epoch_seconds",
    "from_epoch",
    "minutes_between",
    "to_epoch",
    "utc_now",
]


def utc_now() -> datetime:
    """Return the current time as an aware UTC ``datetime``."""
    return datetime.now(tz=UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` in UTC, treating naive values as already UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_epoch(value: datetime | None) -> int | None:
    """Return whole epoch seconds for ``value``."""
    normalized = ensure_utc(value)
    if normalized is None:
        return None
    return int(normalized.timestamp())


def epoch_seconds(value: datetime) -> int:
    """Return whole epoch seconds for a required ``value``; naive means UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def from_epoch(value: int | float | None) -> datetime | None:
    """Return an aware UTC ``datetime`` for epoch seconds."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


def minutes_between(start: datetime, end: datetime) -> int:
    """Return whole minutes elapsed from ``start`` to ``end`` (floored)."""
    start_utc = ensure_utc(start) or start
    end_utc = ensure_utc(end) or end
    return int((end_utc - start_utc).total_seconds() // 60)
