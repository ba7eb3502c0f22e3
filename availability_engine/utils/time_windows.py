"""Pure helpers for interval overlap, weekday lookup and HH:MM arithmetic."""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta, timezone

from availability_engine.domain.errors import ValidationError
from availability_engine.domain.models import DAYS_OF_WEEK


_TIME_STRING_PATTERN = re.compile(r"^\d{2}:\d{2}$")


def windows_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """Half-open overlap test; intervals that only touch do not overlap."""
    return a_start < b_end and a_end > b_start


def day_of_week(value: date) -> str:
    """Weekday name of ``value`` evaluated at UTC midnight."""
    midnight = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    # DAYS_OF_WEEK starts on Sunday; isoweekday() is 1 for Monday and 7 for Sunday.
    return DAYS_OF_WEEK[midnight.isoweekday() % 7]


def is_valid_time_string(value: str) -> bool:
    return _TIME_STRING_PATTERN.fullmatch(value) is not None


def time_string_to_minutes(value: str) -> int:
    if not isinstance(value, str) or not is_valid_time_string(value):
        raise ValidationError(f"InvalidFormat: {value!r} is not HH:MM", field="time")
    hours, minutes = (int(part) for part in value.split(":"))
    return hours * 60 + minutes


def minutes_to_time_string(total_minutes: int) -> str:
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def offset_minutes(instant: datetime, minutes: int) -> datetime:
    return instant + timedelta(minutes=minutes)


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def format_hour_label(hour: int) -> str:
    hour = hour % 24
    if hour == 0:
        return "12am"
    if hour < 12:
        return f"{hour}am"
    if hour == 12:
        return "12pm"
    return f"{hour - 12}pm"


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def iter_month_dates(year: int, month: int) -> list[date]:
    return [date(year, month, day) for day in range(1, days_in_month(year, month) + 1)]


def distinct_days_of_week_in_month(year: int, month: int) -> list[str]:
    """Weekday names present in the month, in order of first appearance."""
    distinct: list[str] = []
    for current in iter_month_dates(year, month):
        name = day_of_week(current)
        if name not in distinct:
            distinct.append(name)
    return distinct
