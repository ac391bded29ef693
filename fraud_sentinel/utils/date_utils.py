"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (storage convention)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC already"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_offset_minutes(value: datetime) -> Optional[int]:
    """Offset from UTC in whole minutes for an aware datetime, None for a naive one"""
    offset = value.utcoffset()
    if offset is None:
        return None
    return int(offset.total_seconds() // 60)


def trailing_window(end: datetime, span: timedelta) -> Tuple[datetime, datetime]:
    """Return (start, end) of the window of length span ending at end"""
    return end - span, end
