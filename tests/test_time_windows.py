from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from availability_engine.domain.errors import ValidationError
from availability_engine.utils.time_windows import (
    day_of_week,
    days_in_month,
    distinct_days_of_week_in_month,
    format_hour_label,
    minutes_between,
    minutes_to_time_string,
    time_string_to_minutes,
    windows_overlap,
)


def _utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 11, 2, hour, minute, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ((_utc(9), _utc(10)), (_utc(9, 30), _utc(11)), True),
        ((_utc(9), _utc(10)), (_utc(10), _utc(11)), False),
        ((_utc(9), _utc(12)), (_utc(10), _utc(11)), True),
        ((_utc(9), _utc(10)), (_utc(11), _utc(12)), False),
    ],
)
def test_windows_overlap_is_symmetric(a, b, expected) -> None:
    assert windows_overlap(*a, *b) is expected
    assert windows_overlap(*b, *a) is expected


def test_day_of_week_uses_sunday_first_names() -> None:
    assert day_of_week(date(2026, 11, 1)) == "Sunday"
    assert day_of_week(date(2026, 11, 2)) == "Monday"
    assert day_of_week(date(2026, 11, 7)) == "Saturday"


def test_time_string_round_trip_and_arithmetic() -> None:
    assert time_string_to_minutes("09:30") == 570
    assert minutes_to_time_string(570) == "09:30"
    assert minutes_between(_utc(9), _utc(12, 15)) == 195


@pytest.mark.parametrize("value", ["9:00", "0900", "09:0", "", "noon"])
def test_time_string_rejects_bad_format(value: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        time_string_to_minutes(value)
    assert exc_info.value.message.startswith("InvalidFormat")


def test_format_hour_label_covers_noon_and_midnight() -> None:
    assert format_hour_label(0) == "12am"
    assert format_hour_label(9) == "9am"
    assert format_hour_label(12) == "12pm"
    assert format_hour_label(17) == "5pm"


def test_month_helpers() -> None:
    assert days_in_month(2028, 2) == 29
    assert days_in_month(2026, 11) == 30
    assert distinct_days_of_week_in_month(2026, 11)[:2] == ["Sunday", "Monday"]
    assert len(distinct_days_of_week_in_month(2026, 2)) == 7
