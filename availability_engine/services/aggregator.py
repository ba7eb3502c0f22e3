"""Rolls per-resource conflict results into monthly and daily summaries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from availability_engine.domain.constraints import BusinessHoursConfig
from availability_engine.domain.models import (
    LEVEL_HIGH,
    LEVEL_LOW,
    LEVEL_MEDIUM,
    PLAN_TYPE_DIY,
    CandidateSlot,
    ConflictTally,
    DayAvailability,
    ResourcePool,
    SlotAvailability,
)
from availability_engine.services.conflict_detector import (
    ConflictDetector,
    is_resource_available_in_slot,
)
from availability_engine.services.demand_calculator import (
    calculate_driver_requirements,
    required_movers,
)
from availability_engine.services.slot_generator import generate_business_hour_slots
from availability_engine.utils.logger import get_logger
from availability_engine.utils.time_windows import day_of_week, iter_month_dates


logger = get_logger(__name__)

HIGH_AVAILABILITY_RATIO = 3.0
MEDIUM_AVAILABILITY_RATIO = 1.5


def determine_availability_level(
    available_movers: int,
    available_drivers: int,
    required_movers_count: int,
    required_drivers_count: int,
) -> str:
    """Classify supply against demand; a zero requirement is unconstrained."""
    mover_ratio = available_movers / required_movers_count if required_movers_count > 0 else 1.0
    driver_ratio = available_drivers / required_drivers_count if required_drivers_count > 0 else 1.0
    min_ratio = min(mover_ratio, driver_ratio)

    if min_ratio >= HIGH_AVAILABILITY_RATIO:
        return LEVEL_HIGH
    if min_ratio >= MEDIUM_AVAILABILITY_RATIO:
        return LEVEL_MEDIUM
    return LEVEL_LOW


@dataclass(frozen=True)
class DailyAggregate:
    slots: tuple[SlotAvailability, ...]
    conflicts: ConflictTally


@dataclass(frozen=True)
class MonthlyAggregate:
    days: tuple[DayAvailability, ...]
    conflicts: ConflictTally
    total_days_checked: int


class AvailabilityAggregator:
    """Applies the conflict detector across resource pools and business-hour slots."""

    def __init__(
        self,
        detector: ConflictDetector,
        business_hours: Optional[BusinessHoursConfig] = None,
    ) -> None:
        self._detector = detector
        self._business_hours = business_hours or BusinessHoursConfig()

    def generate_slots(self, target_date: date) -> list[CandidateSlot]:
        return list(generate_business_hour_slots(target_date, self._business_hours))

    def count_free_resources(
        self,
        pool: ResourcePool,
        slot: CandidateSlot,
        day_name: str,
        tally: Optional[ConflictTally] = None,
    ) -> int:
        free = 0
        for resource_id in pool.resource_ids:
            result = self._detector.check_resource(
                slot,
                day_name,
                resource_id,
                pool.windows_by_resource.get(resource_id, ()),
                pool.commitments_by_resource.get(resource_id, ()),
                pool.blocked_dates_by_resource.get(resource_id, frozenset()),
            )
            if tally is not None and result.in_weekly_schedule:
                tally.record(result.conflicts)
            if result.is_free:
                free += 1
        return free

    def build_daily(
        self,
        target_date: date,
        plan_type: str,
        number_of_units: int,
        drivers: ResourcePool,
        movers: ResourcePool,
        today: date,
    ) -> DailyAggregate:
        tally = ConflictTally()
        slots = self.generate_slots(target_date)

        if target_date < today:
            past = tuple(
                SlotAvailability(
                    start_time=slot.start_time_str,
                    end_time=slot.end_time_str,
                    display=slot.display,
                    available=False,
                    availability_level=LEVEL_LOW,
                    available_movers=0,
                    available_drivers=0,
                )
                for slot in slots
            )
            return DailyAggregate(slots=past, conflicts=tally)

        day_name = day_of_week(target_date)
        movers_required = required_movers(plan_type)
        results: list[SlotAvailability] = []

        for slot in slots:
            free_movers = self.count_free_resources(movers, slot, day_name, tally)
            mover_is_available = plan_type == PLAN_TYPE_DIY or free_movers > 0
            requirement = calculate_driver_requirements(
                plan_type,
                number_of_units,
                has_mover_available=free_movers > 0,
            )
            free_drivers = self.count_free_resources(drivers, slot, day_name, tally)
            drivers_are_available = free_drivers >= requirement.drivers_needed

            available = mover_is_available and drivers_are_available
            level = (
                determine_availability_level(
                    free_movers,
                    free_drivers,
                    movers_required,
                    requirement.drivers_needed,
                )
                if available
                else LEVEL_LOW
            )
            results.append(
                SlotAvailability(
                    start_time=slot.start_time_str,
                    end_time=slot.end_time_str,
                    display=slot.display,
                    available=available,
                    availability_level=level,
                    available_movers=free_movers,
                    available_drivers=free_drivers,
                )
            )

        return DailyAggregate(slots=tuple(results), conflicts=tally)

    def _weekly_eligibility(
        self,
        pool: ResourcePool,
        year: int,
        month: int,
    ) -> dict[str, dict[int, frozenset[str]]]:
        """Per weekday, the slot start times each resource's weekly rules cover.

        The weekly pattern repeats, so this runs once per distinct weekday
        instead of once per date.
        """
        eligibility: dict[str, dict[int, frozenset[str]]] = {}
        for current in iter_month_dates(year, month):
            day_name = day_of_week(current)
            if day_name in eligibility:
                continue
            template = self.generate_slots(current)
            by_resource: dict[int, frozenset[str]] = {}
            for resource_id in pool.resource_ids:
                windows = pool.windows_by_resource.get(resource_id, ())
                covered = frozenset(
                    slot.start_time_str
                    for slot in template
                    if is_resource_available_in_slot(
                        windows,
                        day_name,
                        slot.start_time_str,
                        slot.end_time_str,
                    )
                )
                if covered:
                    by_resource[resource_id] = covered
            eligibility[day_name] = by_resource
        return eligibility

    def _count_free_for_date(
        self,
        pool: ResourcePool,
        eligible: dict[int, frozenset[str]],
        slots: list[CandidateSlot],
        day_name: str,
        tally: ConflictTally,
    ) -> int:
        free = 0
        for resource_id, covered in eligible.items():
            windows = pool.windows_by_resource.get(resource_id, ())
            commitments = pool.commitments_by_resource.get(resource_id, ())
            blocked = pool.blocked_dates_by_resource.get(resource_id, frozenset())
            for slot in slots:
                if slot.start_time_str not in covered:
                    continue
                result = self._detector.check_resource(
                    slot,
                    day_name,
                    resource_id,
                    windows,
                    commitments,
                    blocked,
                )
                if result.is_free:
                    free += 1
                    break
                tally.record(result.conflicts)
                if slot.date in blocked:
                    break
        return free

    def build_monthly(
        self,
        year: int,
        month: int,
        plan_type: str,
        number_of_units: int,
        drivers: ResourcePool,
        movers: ResourcePool,
        today: date,
    ) -> MonthlyAggregate:
        tally = ConflictTally()
        month_dates = iter_month_dates(year, month)
        driver_eligibility = self._weekly_eligibility(drivers, year, month)
        mover_eligibility = self._weekly_eligibility(movers, year, month)
        movers_required = required_movers(plan_type)

        days: list[DayAvailability] = []
        for current in month_dates:
            if current < today:
                continue

            day_name = day_of_week(current)
            slots = self.generate_slots(current)
            free_movers = self._count_free_for_date(
                movers,
                mover_eligibility.get(day_name, {}),
                slots,
                day_name,
                tally,
            )
            free_drivers = self._count_free_for_date(
                drivers,
                driver_eligibility.get(day_name, {}),
                slots,
                day_name,
                tally,
            )
            requirement = calculate_driver_requirements(
                plan_type,
                number_of_units,
                has_mover_available=free_movers > 0,
            )
            mover_is_ok = plan_type == PLAN_TYPE_DIY or free_movers > 0
            has_availability = mover_is_ok and free_drivers >= requirement.drivers_needed
            level = determine_availability_level(
                free_movers,
                free_drivers,
                movers_required,
                requirement.drivers_needed,
            )
            days.append(
                DayAvailability(
                    date=current,
                    availability_level=level,
                    has_availability=has_availability,
                    available_movers=free_movers,
                    available_drivers=free_drivers,
                )
            )

        logger.debug(
            "Monthly aggregation finished | year=%s | month=%s | days=%s",
            year,
            month,
            len(days),
        )
        return MonthlyAggregate(
            days=tuple(days),
            conflicts=tally,
            total_days_checked=len(month_dates),
        )
