#!/usr/bin/env python3
"""
Date helpers for due-date comparisons against Firestore timestamps.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (Firestore always returns aware ones)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def start_of_day(now: Optional[datetime] = None, tz_name: str = 'UTC') -> datetime:
    """
    Local midnight of the day containing `now` in the given time zone.

    Returns an aware datetime, suitable as a Firestore query bound.
    """
    local = ensure_aware(now or utc_now()).astimezone(ZoneInfo(tz_name))
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def local_hour(now: Optional[datetime] = None, tz_name: str = 'UTC') -> int:
    return ensure_aware(now or utc_now()).astimezone(ZoneInfo(tz_name)).hour


def retention_cutoff(now: Optional[datetime] = None, retention_days: int = 30) -> datetime:
    return ensure_aware(now or utc_now()) - timedelta(days=retention_days)


def to_iso_date(value) -> str:
    """ISO date for a timestamp-like value, empty string when unknown."""
    if isinstance(value, datetime):
        return ensure_aware(value).date().isoformat()
    if value is None:
        return ''
    return str(value)
