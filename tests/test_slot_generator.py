from __future__ import annotations

from datetime import date, datetime, timezone

from availability_engine.domain.constraints import BusinessHoursConfig
from availability_engine.services.slot_generator import find_slot, generate_business_hour_slots


MONDAY = date(2026, 11, 2)


def test_default_business_day_has_nine_hourly_slots() -> None:
    slots = list(generate_business_hour_slots(MONDAY))

    assert [slot.start_time_str for slot in slots] == [f"{hour:02d}:00" for hour in range(9, 18)]
    assert slots[0].display == "9am-10am"
    assert slots[3].display == "12pm-1pm"
    assert slots[-1].display == "5pm-6pm"


def test_slot_ending_exactly_at_close_is_included() -> None:
    slots = list(generate_business_hour_slots(MONDAY))

    assert slots[-1].end_time_str == "18:00"
    assert all(slot.start_time_str < "18:00" for slot in slots)


def test_slots_that_would_run_past_close_are_skipped() -> None:
    config = BusinessHoursConfig(start_hour=9, end_hour=18, slot_duration_minutes=90)
    slots = list(generate_business_hour_slots(MONDAY, config))

    assert slots[-1].start_time_str == "16:00"
    assert slots[-1].end_time_str == "17:30"
    assert slots[-1].display == "4pm-5:30pm"
    assert find_slot(MONDAY, "17:00", config) is None


def test_slot_instants_are_business_local_in_utc() -> None:
    first = next(generate_business_hour_slots(MONDAY))

    # Pacific standard time applies after the first Sunday of November.
    assert first.slot_start == datetime(2026, 11, 2, 17, 0, tzinfo=timezone.utc)
    assert first.slot_end == datetime(2026, 11, 2, 18, 0, tzinfo=timezone.utc)
    assert first.date == MONDAY


def test_find_slot_matches_start_time() -> None:
    slot = find_slot(MONDAY, "12:00")

    assert slot is not None
    assert slot.end_time_str == "13:00"
    assert find_slot(MONDAY, "08:00") is None
