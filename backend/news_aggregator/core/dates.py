"""
Date helpers. Everything stored or compared is naive UTC.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from dateutil import parser as date_parse


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_published_at(value: Any, default: Optional[datetime] = None) -> datetime:
    """
    Parse a provider timestamp, falling back to now.

    Missing or unparsable dates must never drop an article, since
    ordering is by publish date.
    """
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str) and value.strip():
        try:
            return to_naive_utc(date_parse.isoparse(value.strip()))
        except (ValueError, OverflowError):
            try:
                return to_naive_utc(date_parse.parse(value))
            except (ValueError, OverflowError):
                pass
    return default or utcnow()


def seconds_until_end_of_day(now: Optional[datetime] = None) -> int:
    """Seconds left in the current UTC day, at least 1."""
    now = now or utcnow()
    end = datetime.combine(now.date() + timedelta(days=1), time.min)
    return max(1, int((end - now).total_seconds()))


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)
