"""Freshness checks and conditional-request helpers."""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Optional


def _as_utc(dt: datetime) -> datetime:
    # Handle timezone-naive datetimes
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_age(modified: datetime, now: Optional[datetime] = None) -> timedelta:
    """Get the age of a local copy.

    Args:
        modified: Stored modification time of the local copy
        now: Reference time (defaults to the current UTC time)

    Returns:
        Elapsed time since modified; negative if modified is in the future
    """
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    return now - _as_utc(modified)


def is_stale(
    modified: datetime, validity: timedelta, now: Optional[datetime] = None
) -> bool:
    """Check if a local copy is older than the validity window.

    A copy whose age equals the window exactly is still fresh.
    """
    return get_age(modified, now) > validity


def conditional_key(
    modified: datetime, validity: timedelta, now: Optional[datetime] = None
) -> Optional[datetime]:
    """Get the last-known-good timestamp to condition a refresh on.

    Returns:
        The modification time (UTC) if the copy is stale, None if fresh
    """
    if is_stale(modified, validity, now):
        return _as_utc(modified)
    return None


def get_validity_remaining(
    modified: datetime, validity: timedelta, now: Optional[datetime] = None
) -> int:
    """Get whole seconds until a local copy becomes stale (never negative)."""
    remaining = validity - get_age(modified, now)
    return max(0, int(remaining.total_seconds()))


def format_http_date(dt: datetime) -> str:
    """Format a timestamp as an HTTP-date (RFC 7231 IMF-fixdate).

    Sub-second precision is dropped, as HTTP dates carry whole seconds.

    Examples:
        >>> format_http_date(datetime(2021, 3, 27, 14, 5, 9, tzinfo=timezone.utc))
        'Sat, 27 Mar 2021 14:05:09 GMT'
    """
    return format_datetime(_as_utc(dt).replace(microsecond=0), usegmt=True)
