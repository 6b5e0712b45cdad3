from datetime import datetime, timezone, date
from typing import Union, Optional

from dateutil import parser


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def standardize_timestamp(timestamp: Union[datetime, date, str, None]) -> Optional[datetime]:
    """
    Coerce a timestamp to an aware UTC datetime.

    Naive datetimes are taken to be UTC already (sqlite hands them back
    that way). Strings are parsed with dateutil. None passes through.
    """
    if timestamp is None:
        return None
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)
    if isinstance(timestamp, date):
        return datetime(timestamp.year, timestamp.month, timestamp.day, tzinfo=timezone.utc)
    dt = parser.isoparse(timestamp) if 'T' in timestamp else parser.parse(timestamp)
    return standardize_timestamp(dt)


def month_key(timestamp: Optional[datetime]) -> Optional[str]:
    """Calendar year-month label, e.g. '2025-03'."""
    if timestamp is None:
        return None
    return standardize_timestamp(timestamp).strftime('%Y-%m')


def day_key(timestamp: Optional[datetime]) -> Optional[str]:
    """Calendar day label, e.g. '2025-03-14'."""
    if timestamp is None:
        return None
    return standardize_timestamp(timestamp).strftime('%Y-%m-%d')


def hours_between(earlier: datetime, later: datetime) -> float:
    return (standardize_timestamp(later) - standardize_timestamp(earlier)).total_seconds() / 3600
