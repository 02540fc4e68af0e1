"""
DateTime utilities for consistent timezone handling.

Every timestamp the engine compares (validity windows, ``as_of``) goes
through ``to_utc`` so naive and aware values never meet in one comparison.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get the current UTC time with timezone awareness.
    
    Returns:
        datetime: Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC timezone.
    
    Naive datetimes are assumed to already be UTC.
    
    Args:
        dt: Datetime to convert
    
    Returns:
        datetime: Datetime in UTC timezone
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    if dt.tzinfo != timezone.utc:
        return dt.astimezone(timezone.utc)
    return dt


def optional_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert to UTC, passing ``None`` through (open-ended window bound)."""
    if dt is None:
        return None
    return to_utc(dt)


def earliest(*values: Optional[datetime]) -> Optional[datetime]:
    """Return the earliest non-null datetime, or ``None`` if all are open-ended."""
    present = [to_utc(value) for value in values if value is not None]
    if not present:
        return None
    return min(present)


def format_utc(dt: Optional[datetime] = None) -> str:
    """Format a datetime as an ISO 8601 UTC string (defaults to now)."""
    if dt is None:
        dt = utc_now()
    return to_utc(dt).isoformat()
