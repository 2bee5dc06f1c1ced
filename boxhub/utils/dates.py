"""Date and time helpers shared by planning, billing and RGPD code."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, UTC
import logging
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return an aware UTC datetime.

    SQLite drops tzinfo on the way back from the database; values written
    by this service are always UTC, so naive values are tagged as such.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = start_of_day(day)
    return start, start + timedelta(days=1)


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    for candidate in (day.day, 30, 29, 28):
        try:
            return day.replace(year=year, month=month, day=min(day.day, candidate))
        except ValueError:
            continue
    raise ValueError(f"Cannot shift {day} by {months} months")


def parse_hhmm(value: str) -> time:
    """Parse 'HH:MM' into a time; raises ValueError on bad input."""
    hours, minutes = value.split(":", 1)
    return time(hour=int(hours), minute=int(minutes))


def js_weekday(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


DEFAULT_TIMEZONE = "Europe/Paris"


def org_zone(organization) -> ZoneInfo:
    """The organization's timezone setting, UTC when unknown."""
    name = organization.get_setting("timezone", DEFAULT_TIMEZONE) if organization is not None else DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", name)
        return ZoneInfo("UTC")


def local_to_utc(day: date, at: time, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=zone).astimezone(UTC)
