"""
Time helpers for the business timezone.

Timestamps are stored as naive UTC (like the rest of the schema); shift
dates and schedule times are local to settings.timezone.
"""
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from staffshift.core.config import settings
from staffshift.core.money import round_cents


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive input is taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return as_utc(value).replace(tzinfo=None)


def local_date(moment: datetime) -> date:
    return as_utc(moment).astimezone(business_tz()).date()


def parse_hhmm(value: str) -> time:
    hours, minutes = value.strip().split(":")[:2]
    return time(int(hours), int(minutes))


def local_time_at(day: date, hhmm: str) -> datetime:
    """Aware datetime for a local "HH:MM" on the given day."""
    return datetime.combine(day, parse_hhmm(hhmm), tzinfo=business_tz())


def start_of_next_day(day: date) -> datetime:
    return datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=business_tz())


def hours_between(start: datetime, end: datetime) -> Decimal:
    """Elapsed hours rounded to cents, never negative."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    if seconds <= 0:
        return Decimal("0.00")
    return round_cents(Decimal(str(seconds)) / Decimal(3600))
