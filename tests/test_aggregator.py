from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from availability_engine.domain.constraints import BusinessHoursConfig, JobTiming
from availability_engine.domain.models import Commitment, ResourceAvailabilityWindow, ResourcePool
from availability_engine.services.aggregator import AvailabilityAggregator
from availability_engine.services.conflict_detector import ConflictDetector


PACIFIC = ZoneInfo("America/Los_Angeles")
NO_MOVERS = ResourcePool(resource_type="mover", windows_by_resource={})


def _weekday_pool(resource_type: str, count: int, days=("Monday",), commitments=None, blocked=None) -> ResourcePool:
    return ResourcePool(
        resource_type=resource_type,
        windows_by_resource={
            resource_id: tuple(
                ResourceAvailabilityWindow(resource_type, resource_id, day, "09:00", "18:00")
                for day in days
            )
            for resource_id in range(1, count + 1)
        },
        blocked_dates_by_resource=blocked or {},
        commitments_by_resource=commitments or {},
    )


def _aggregator(symmetric: bool = True) -> AvailabilityAggregator:
    detector = ConflictDetector(JobTiming(symmetric_buffers=symmetric))
    return AvailabilityAggregator(detector, BusinessHoursConfig())


def test_monthly_ratio_of_exactly_one_and_a_half_is_medium() -> None:
    drivers = _weekday_pool("driver", 3)

    result = _aggregator().build_monthly(2026, 11, "DIY", 2, drivers, NO_MOVERS, date(2026, 10, 18))

    tiers = {day.date: day for day in result.days}
    assert tiers[date(2026, 11, 2)].availability_level == "medium"
    assert tiers[date(2026, 11, 2)].has_availability
    assert tiers[date(2026, 11, 3)].availability_level == "low"
    assert not tiers[date(2026, 11, 3)].has_availability
    assert result.total_days_checked == 30


def test_monthly_omits_dates_before_today() -> None:
    drivers = _weekday_pool("driver", 1)

    result = _aggregator().build_monthly(2026, 11, "DIY", 1, drivers, NO_MOVERS, date(2026, 11, 10))

    assert result.days[0].date == date(2026, 11, 10)
    assert all(day.date >= date(2026, 11, 10) for day in result.days)
    assert len(result.days) == 21


def test_monthly_counts_blocked_resource_as_unavailable() -> None:
    drivers = _weekday_pool("driver", 2, blocked={1: frozenset({date(2026, 11, 2)})})

    result = _aggregator().build_monthly(2026, 11, "DIY", 1, drivers, NO_MOVERS, date(2026, 10, 18))

    by_date = {day.date: day for day in result.days}
    assert by_date[date(2026, 11, 2)].available_drivers == 1
    assert by_date[date(2026, 11, 9)].available_drivers == 2
    assert result.conflicts.blocked_dates >= 1


def test_daily_full_service_with_free_mover_ignores_drivers() -> None:
    movers = _weekday_pool("mover", 1)
    drivers = ResourcePool(resource_type="driver", windows_by_resource={})

    result = _aggregator().build_daily(date(2026, 11, 2), "FULL_SERVICE", 1, drivers, movers, date(2026, 10, 18))

    assert len(result.slots) == 9
    assert all(slot.available for slot in result.slots)
    assert all(slot.available_drivers == 0 for slot in result.slots)


def test_daily_full_service_without_mover_is_unbookable() -> None:
    drivers = _weekday_pool("driver", 4)

    result = _aggregator().build_daily(date(2026, 11, 2), "FULL_SERVICE", 1, drivers, NO_MOVERS, date(2026, 10, 18))

    assert not any(slot.available for slot in result.slots)
    assert all(slot.availability_level == "low" for slot in result.slots)


def test_daily_past_date_is_fully_unavailable() -> None:
    drivers = _weekday_pool("driver", 3)

    result = _aggregator().build_daily(date(2026, 11, 2), "DIY", 1, drivers, NO_MOVERS, date(2026, 11, 3))

    assert len(result.slots) == 9
    assert not any(slot.available for slot in result.slots)
    assert all(slot.available_drivers == 0 for slot in result.slots)


def test_daily_tallies_commitment_conflicts() -> None:
    anchor = datetime(2026, 11, 2, 10, tzinfo=PACIFIC).astimezone(timezone.utc)
    drivers = _weekday_pool(
        "driver",
        1,
        commitments={1: (Commitment("driver", 1, anchor, "onfleet_task", appointment_id=4),)},
    )

    result = _aggregator(symmetric=False).build_daily(
        date(2026, 11, 2), "DIY", 1, drivers, NO_MOVERS, date(2026, 10, 18)
    )

    assert [slot.available for slot in result.slots[:4]] == [False, False, False, True]
    assert result.conflicts.onfleet_tasks == 3
    assert result.conflicts.existing_bookings == 0
