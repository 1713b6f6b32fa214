# src/roaster_api/db/time.py
"""Time utilities for database models."""

from datetime import UTC, datetime, timedelta

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MAX_UTC = datetime.max.replace(tzinfo=UTC)
_MAX_UNIX = int((_MAX_UTC - _EPOCH).total_seconds())


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def from_unix(seconds: int | None) -> datetime | None:
    """Convert unix seconds to an aware UTC datetime.

    The ledger stores expiries as uint64, so "never expires" sentinels such as
    ``2**64 - 1`` are clamped to the largest representable datetime.
    """
    if seconds is None:
        return None
    seconds = int(seconds)
    if seconds >= _MAX_UNIX:
        return _MAX_UTC
    return _EPOCH + timedelta(seconds=seconds)
