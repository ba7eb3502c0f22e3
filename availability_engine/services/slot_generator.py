"""Business-hours candidate slot generation."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

from availability_engine.domain.constraints import BusinessHoursConfig
from availability_engine.domain.models import CandidateSlot
from availability_engine.utils.time_windows import format_hour_label, minutes_to_time_string


DEFAULT_BUSINESS_HOURS = BusinessHoursConfig()


def _format_boundary(total_minutes: int) -> str:
    hour, minute = divmod(total_minutes, 60)
    label = format_hour_label(hour)
    if minute == 0:
        return label
    return f"{label[:-2]}:{minute:02d}{label[-2:]}"


def generate_business_hour_slots(
    target_date: date,
    config: Optional[BusinessHoursConfig] = None,
) -> Iterator[CandidateSlot]:
    """Yield the day's candidate slots in start order.

    One slot starts at every whole hour in ``[start_hour, end_hour)``. Slots
    whose end would pass ``end_hour`` are skipped rather than truncated.
    """
    config = config or DEFAULT_BUSINESS_HOURS
    tz = config.tzinfo
    closing_minutes = config.end_hour * 60

    for hour in range(config.start_hour, config.end_hour):
        start_minutes = hour * 60
        end_minutes = start_minutes + config.slot_duration_minutes
        if end_minutes > closing_minutes:
            continue

        local_start = datetime(target_date.year, target_date.month, target_date.day, hour, tzinfo=tz)
        local_end = local_start + timedelta(minutes=config.slot_duration_minutes)

        yield CandidateSlot(
            date=target_date,
            slot_start=local_start.astimezone(timezone.utc),
            slot_end=local_end.astimezone(timezone.utc),
            start_time_str=minutes_to_time_string(start_minutes),
            end_time_str=minutes_to_time_string(end_minutes),
            display=f"{_format_boundary(start_minutes)}-{_format_boundary(end_minutes)}",
        )


def find_slot(
    target_date: date,
    start_time: str,
    config: Optional[BusinessHoursConfig] = None,
) -> Optional[CandidateSlot]:
    """Return the generated slot starting at ``start_time`` ("HH:MM"), if any."""
    for slot in generate_business_hour_slots(target_date, config):
        if slot.start_time_str == start_time:
            return slot
    return None
