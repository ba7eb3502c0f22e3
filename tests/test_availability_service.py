"""End-to-end availability queries against a temporary SQLite database."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

import pytest

from availability_engine.domain.errors import BusinessLogicError, CacheError, DatabaseError, ValidationError
from availability_engine.repository.availability_repository import AvailabilityRepository
from availability_engine.services.availability_service import AvailabilityService
from availability_engine.services.cache_service import AvailabilityCache


PACIFIC = ZoneInfo("America/Los_Angeles")
MONDAY = date(2026, 11, 2)
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")


class FailingStore:
    """Cache store whose backend is always down."""

    def get(self, key: str) -> Optional[Any]:
        raise CacheError("connection refused")

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise CacheError("connection refused")

    def delete_prefix(self, prefix: str) -> int:
        raise CacheError("connection refused")

    def stats(self) -> dict[str, Any]:
        raise CacheError("connection refused")


def _add_resource(repository, resource_type: str, days=WEEKDAYS, start="09:00", end="18:00") -> int:
    resource_id = repository.create_resource(resource_type, f"{resource_type} under test")
    repository.replace_weekly_availability(
        resource_type,
        resource_id,
        [(day, start, end) for day in days],
    )
    return resource_id


def _at(day: date, hour: int) -> datetime:
    return datetime(day.year, day.month, day.day, hour, tzinfo=PACIFIC)


def _open_starts(result) -> list[str]:
    return [slot.start_time for slot in result.time_slots if slot.available]


def test_diy_driver_with_ten_o_clock_commitment(repository, service_factory) -> None:
    driver_id = _add_resource(repository, "driver", days=("Monday",))
    repository.create_appointment(_at(MONDAY, 10), "DIY", 1, driver_id=driver_id)

    result = service_factory(symmetric_buffers=False).get_daily_time_slots("DIY", MONDAY, 1)

    assert [slot.start_time for slot in result.time_slots if not slot.available] == [
        "09:00",
        "10:00",
        "11:00",
    ]
    assert _open_starts(result)[0] == "12:00"
    assert result.metadata.conflicts_found["existing_bookings"] == 3


def test_symmetric_buffers_extend_the_blocked_range(repository, service_factory) -> None:
    driver_id = _add_resource(repository, "driver", days=("Monday",))
    repository.create_appointment(_at(MONDAY, 10), "DIY", 1, driver_id=driver_id)

    result = service_factory().get_daily_time_slots("DIY", MONDAY, 1)

    assert _open_starts(result)[0] == "13:00"


def test_full_service_with_free_mover_is_bookable_without_drivers(repository, service_factory) -> None:
    _add_resource(repository, "mover")

    result = service_factory().get_daily_time_slots("FULL_SERVICE", MONDAY, 1)

    assert len(result.time_slots) == 9
    assert all(slot.available for slot in result.time_slots)
    assert result.metadata.resources_checked == {"drivers": 0, "movers": 1}


def test_diy_query_does_not_load_movers(repository, service_factory) -> None:
    _add_resource(repository, "mover")
    _add_resource(repository, "driver")

    result = service_factory().get_daily_time_slots("DIY", MONDAY, 1)

    assert result.metadata.resources_checked == {"drivers": 1, "movers": 0}
    assert all(slot.available_movers == 0 for slot in result.time_slots)


def test_second_identical_query_is_a_cache_hit(repository, service_factory) -> None:
    _add_resource(repository, "driver")
    service = service_factory()

    first = service.get_daily_time_slots("DIY", "2026-11-02", 1)
    second = service.get_daily_time_slots("DIY", "2026-11-02", 1)

    assert first.metadata.cache_hit is False
    assert second.metadata.cache_hit is True
    assert first.time_slots == second.time_slots
    assert service.get_cache_stats()["hits"] == 1


def test_identical_queries_are_idempotent_without_cache(repository, service_factory) -> None:
    _add_resource(repository, "driver")
    _add_resource(repository, "driver", days=("Monday",), start="12:00")

    first = service_factory(cache_override=AvailabilityCache()).get_monthly_availability("DIY", 2026, 11, 1)
    second = service_factory(cache_override=AvailabilityCache()).get_monthly_availability("DIY", 2026, 11, 1)

    assert first.days == second.days
    assert first.tiers == second.tiers
    assert second.metadata.cache_hit is False


def test_monthly_result_is_date_to_tier_map(repository, service_factory) -> None:
    for _ in range(3):
        _add_resource(repository, "driver", days=("Monday",))

    result = service_factory().get_monthly_availability("DIY", 2026, 11, 2)

    assert result.tiers["2026-11-02"] == "medium"
    assert result.tiers["2026-11-03"] == "low"
    assert len(result.tiers) == 30
    assert result.metadata.total_days_checked == 30
    assert result.to_dict()["data"]["2026-11-09"] == "medium"


def test_monthly_omits_past_dates(repository, service_factory) -> None:
    _add_resource(repository, "driver")

    result = service_factory().get_monthly_availability("DIY", 2026, 10, 1)

    assert min(result.tiers) == "2026-10-18"
    assert "2026-10-17" not in result.tiers
    assert result.metadata.total_days_checked == 31


def test_past_daily_query_is_unavailable_and_not_cached(repository, service_factory) -> None:
    _add_resource(repository, "driver")
    service = service_factory()

    result = service.get_daily_time_slots("DIY", date(2026, 10, 5), 1)
    again = service.get_daily_time_slots("DIY", date(2026, 10, 5), 1)

    assert not any(slot.available for slot in result.time_slots)
    assert again.metadata.cache_hit is False
    assert service.get_cache_stats()["sets"] == 0


def test_new_commitment_never_increases_open_slots(repository, service_factory) -> None:
    driver_ids = [_add_resource(repository, "driver") for _ in range(2)]
    before = service_factory(cache_override=AvailabilityCache()).get_daily_time_slots("DIY", MONDAY, 2)

    repository.create_appointment(_at(MONDAY, 14), "DIY", 1, driver_id=driver_ids[0])
    after = service_factory(cache_override=AvailabilityCache()).get_daily_time_slots("DIY", MONDAY, 2)

    assert len(_open_starts(after)) <= len(_open_starts(before))
    assert "14:00" not in _open_starts(after)


def test_canceled_and_excluded_appointments_do_not_conflict(repository, service_factory) -> None:
    driver_id = _add_resource(repository, "driver")
    canceled = repository.create_appointment(_at(MONDAY, 10), "DIY", 1, driver_id=driver_id)
    repository.update_appointment_status(canceled, "Canceled")
    editing = repository.create_appointment(_at(MONDAY, 15), "DIY", 1, driver_id=driver_id)

    service = service_factory()
    plain = service.get_daily_time_slots("DIY", MONDAY, 1)
    edit_mode = service.get_daily_time_slots("DIY", MONDAY, 1, exclude_appointment_id=editing)

    assert "10:00" in _open_starts(plain)
    assert "15:00" not in _open_starts(plain)
    assert len(_open_starts(edit_mode)) == 9


@pytest.mark.parametrize(
    ("kwargs", "field"),
    [
        ({"plan_type": "WHITE_GLOVE", "year": 2026, "month": 11}, "planType"),
        ({"plan_type": "DIY", "year": 1999, "month": 11}, "year"),
        ({"plan_type": "DIY", "year": 2026, "month": 13}, "month"),
        ({"plan_type": "DIY", "year": 2026, "month": 11, "number_of_units": 0}, "numberOfUnits"),
        ({"plan_type": "DIY", "year": 2026, "month": 11, "number_of_units": 21}, "numberOfUnits"),
    ],
)
def test_monthly_validation_errors_carry_field(service_factory, kwargs, field) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service_factory().get_monthly_availability(**kwargs)
    assert exc_info.value.field == field


def test_daily_rejects_malformed_date(service_factory) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service_factory().get_daily_time_slots("DIY", "2026/11/02", 1)
    assert exc_info.value.field == "date"


def test_cache_outage_degrades_to_uncached_results(repository, service_factory) -> None:
    _add_resource(repository, "driver")
    broken_cache = AvailabilityCache(FailingStore())
    service = service_factory(cache_override=broken_cache)

    first = service.get_daily_time_slots("DIY", MONDAY, 1)
    second = service.get_daily_time_slots("DIY", MONDAY, 1)

    assert first.time_slots == second.time_slots
    assert second.metadata.cache_hit is False
    stats = service.get_cache_stats()
    assert stats["errors"] == 4
    assert "error" in stats["store"]


def test_commitment_for_resource_without_schedule_is_business_logic_error(repository, service_factory) -> None:
    orphan = repository.create_resource("driver", "No schedule")
    repository.create_appointment(_at(MONDAY, 11), "DIY", 1, driver_id=orphan)

    with pytest.raises(BusinessLogicError):
        service_factory().get_daily_time_slots("DIY", MONDAY, 1)


def test_missing_schema_surfaces_database_error(settings) -> None:
    bare_repository = AvailabilityRepository(settings)
    service = AvailabilityService(repository=bare_repository, settings=settings, cache=AvailabilityCache())

    with pytest.raises(DatabaseError):
        service.get_daily_time_slots("DIY", date(2100, 1, 4), 1)


def test_slot_conflicts_explain_each_resource(repository, service_factory) -> None:
    busy = _add_resource(repository, "driver")
    _add_resource(repository, "driver")
    repository.create_appointment(_at(MONDAY, 10), "DIY", 1, driver_id=busy)

    report = service_factory().get_slot_conflicts(MONDAY, "10:00", "DIY")

    assert report["slot"]["display"] == "10am-11am"
    by_id = {row["resource_id"]: row for row in report["drivers"]}
    assert by_id[busy]["is_free"] is False
    assert by_id[busy]["conflicts"][0]["type"] == "booking"
    assert [row["is_free"] for row in by_id.values()].count(True) == 1
    assert report["movers"] == []


def test_slot_conflicts_rejects_non_business_slot(service_factory) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service_factory().get_slot_conflicts(MONDAY, "19:00", "DIY")
    assert exc_info.value.field == "startTime"


def test_warm_cache_precomputes_each_plan(repository, service_factory) -> None:
    _add_resource(repository, "driver")
    _add_resource(repository, "mover")
    service = service_factory()

    computed = service.warm_cache([MONDAY, "2026-11-03"])

    assert computed == 4
    assert service.warm_cache([MONDAY]) == 0
    assert service.get_daily_time_slots("FULL_SERVICE", MONDAY, 1).metadata.cache_hit is True


@pytest.mark.parametrize("value", ["2026-11-2", "2026-1-05", "26-11-02", "2026-11-02T09:00"])
def test_daily_requires_zero_padded_iso_date(service_factory, value) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service_factory().get_daily_time_slots("DIY", value, 1)
    assert exc_info.value.field == "date"


def test_daily_rejects_impossible_calendar_date(service_factory) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service_factory().get_daily_time_slots("DIY", "2026-02-30", 1)
    assert exc_info.value.field == "date"


def test_booking_committed_mid_query_is_not_cached_as_open(
    repository, service_factory, events, monkeypatch
) -> None:
    driver_id = _add_resource(repository, "driver")
    service = service_factory()
    aggregator = service._aggregator
    original_build_daily = aggregator.build_daily
    booked: list[int] = []

    def build_after_concurrent_booking(*args, **kwargs):
        if not booked:
            booked.append(events.create_appointment(_at(MONDAY, 10), "DIY", 1, driver_id=driver_id))
        return original_build_daily(*args, **kwargs)

    monkeypatch.setattr(aggregator, "build_daily", build_after_concurrent_booking)

    stale = service.get_daily_time_slots("DIY", MONDAY, 1)
    fresh = service.get_daily_time_slots("DIY", MONDAY, 1)

    assert "10:00" in _open_starts(stale)
    assert fresh.metadata.cache_hit is False
    assert "10:00" not in _open_starts(fresh)
    assert service.get_cache_stats()["stale_sets_skipped"] == 1


def test_monthly_result_is_not_cached_across_an_invalidation(repository, service_factory, events, monkeypatch) -> None:
    driver_id = _add_resource(repository, "driver")
    service = service_factory()
    aggregator = service._aggregator
    original_build_monthly = aggregator.build_monthly

    def build_after_blocked_date(*args, **kwargs):
        events.add_blocked_date("driver", driver_id, MONDAY, "Sick")
        return original_build_monthly(*args, **kwargs)

    monkeypatch.setattr(aggregator, "build_monthly", build_after_blocked_date)
    stale = service.get_monthly_availability("DIY", 2026, 11, 1)
    monkeypatch.setattr(aggregator, "build_monthly", original_build_monthly)

    refreshed = service.get_monthly_availability("DIY", 2026, 11, 1)

    def monday(result):
        return next(day for day in result.days if day.date == MONDAY)

    assert monday(stale).has_availability is True
    assert refreshed.metadata.cache_hit is False
    assert monday(refreshed).has_availability is False
