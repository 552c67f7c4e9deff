"""
Helper utilities
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytz


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values pass through"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_today(tz_name: str = "UTC", now: Optional[datetime] = None) -> date:
    """Current calendar date in the given timezone"""
    tz = pytz.timezone(tz_name)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(tz).date()


def days_back_range(days: int, today: date) -> tuple[date, date]:
    """Inclusive [today - days, today] range"""
    return today - timedelta(days=days), today
