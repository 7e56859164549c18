"""Shared datetime utilities.

Everything downstream compares naive datetimes in the host's local time,
the same clock ``datetime.now()`` and file mtimes use. Aware values are
converted to local time before their tzinfo is dropped.
"""

from __future__ import annotations

from datetime import datetime


def to_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_iso(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 datetime string, returning None on invalid input.

    Accepts the variants found in session logs and feedback records:
    - Standard ISO format: 2026-02-12T10:30:00 (taken as local time)
    - With timezone Z suffix: 2026-02-12T10:30:00.123Z
    - With timezone offset: 2026-02-12T10:30:00+05:00
    - An already-parsed datetime

    Returns a naive local datetime so values with different offsets order
    correctly against each other and against ``datetime.now()``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive(value)
    if not isinstance(value, str):
        return None
    try:
        return to_naive(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


def whole_days_between(later: datetime, earlier: datetime) -> int:
    """Floor of the number of days between two datetimes, never negative."""
    seconds = (to_naive(later) - to_naive(earlier)).total_seconds()
    return max(0, int(seconds // 86400))
