"""
Timezone-safe datetime utilities.

All timestamps are stored in UTC. Compatible with both SQLite and PostgreSQL.
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """
    Return current UTC datetime with timezone info attached.

    Example:
        >>> now = utc_now()
        >>> now.tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Convert any datetime to UTC.

    If the datetime is naive (no timezone info), it's assumed to be UTC.
    SQLite returns naive datetimes, so values read back from it go through here.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def seconds_from_now(seconds: float, now: datetime = None) -> datetime:
    """UTC instant ``seconds`` after ``now`` (defaults to the current time)."""
    base = ensure_utc(now) if now else utc_now()
    return base + timedelta(seconds=seconds)
