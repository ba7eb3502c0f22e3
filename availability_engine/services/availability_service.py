"""Availability query façade: validation, snapshot loading, caching and aggregation."""

from __future__ import annotations

import re
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional

from availability_engine.domain.constraints import (
    BusinessHoursConfig,
    JobTiming,
    business_hours_from_settings,
    job_timing_from_settings,
    validate_business_hours,
)
from availability_engine.domain.errors import BusinessLogicError, ValidationError
from availability_engine.domain.models import (
    PLAN_TYPE_FULL_SERVICE,
    PLAN_TYPES,
    RESOURCE_DRIVER,
    RESOURCE_MOVER,
    BlockedDate,
    Commitment,
    DailyAvailabilityResult,
    MonthlyAvailabilityResult,
    QueryMetadata,
    ResourceAvailabilityWindow,
    ResourcePool,
)
from availability_engine.repository.availability_repository import AvailabilityRepository
from availability_engine.services.aggregator import AvailabilityAggregator
from availability_engine.services.cache_service import (
    AvailabilityCache,
    build_cache_key,
    build_cache_store,
    month_scope,
)
from availability_engine.services.conflict_detector import ConflictDetector
from availability_engine.services.slot_generator import find_slot
from availability_engine.utils.config import Settings, get_settings
from availability_engine.utils.logger import get_logger
from availability_engine.utils.time_windows import (
    day_of_week,
    days_in_month,
    time_string_to_minutes,
)


logger = get_logger(__name__)

MIN_QUERY_YEAR = 2000
MAX_QUERY_YEAR = 2100
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 3)


class AvailabilityService:
    """Answers monthly and daily availability queries for drivers and movers."""

    def __init__(
        self,
        repository: Optional[AvailabilityRepository] = None,
        settings: Optional[Settings] = None,
        cache: Optional[AvailabilityCache] = None,
        *,
        business_hours: Optional[BusinessHoursConfig] = None,
        job_timing: Optional[JobTiming] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or AvailabilityRepository(self._settings)
        self._cache = cache or AvailabilityCache(build_cache_store(self._settings))
        self._business_hours = business_hours or business_hours_from_settings(self._settings)
        validate_business_hours(self._business_hours)
        self._detector = ConflictDetector(job_timing or job_timing_from_settings(self._settings))
        self._aggregator = AvailabilityAggregator(self._detector, self._business_hours)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def today(self) -> date:
        """Current date in the business timezone."""
        return self._clock().astimezone(self._business_hours.tzinfo).date()

    # -- validation -----------------------------------------------------

    def _validate_plan_type(self, plan_type: str) -> None:
        if plan_type not in PLAN_TYPES:
            raise ValidationError(
                f"planType must be one of {', '.join(PLAN_TYPES)}",
                field="planType",
            )

    def _validate_units(self, number_of_units: int) -> None:
        if isinstance(number_of_units, bool) or not isinstance(number_of_units, int):
            raise ValidationError("numberOfUnits must be an integer", field="numberOfUnits")
        if number_of_units <= 0:
            raise ValidationError("numberOfUnits must be a positive integer", field="numberOfUnits")
        if number_of_units > self._settings.max_number_of_units:
            raise ValidationError(
                f"numberOfUnits must be <= {self._settings.max_number_of_units}",
                field="numberOfUnits",
            )

    @staticmethod
    def _validate_year_month(year: int, month: int) -> None:
        if isinstance(year, bool) or not isinstance(year, int) or not MIN_QUERY_YEAR <= year <= MAX_QUERY_YEAR:
            raise ValidationError(
                f"year must be a 4-digit year between {MIN_QUERY_YEAR} and {MAX_QUERY_YEAR}",
                field="year",
            )
        if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12", field="month")

    @staticmethod
    def _parse_date(value: date | str) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str) or not _ISO_DATE.match(value):
            raise ValidationError("date must follow YYYY-MM-DD format", field="date")
        try:
            return date.fromisoformat(value)
        except ValueError as exc:
            raise ValidationError(f"{value} is not a calendar date", field="date") from exc

    # -- snapshot loading -----------------------------------------------

    def _local_day_start(self, value: date) -> datetime:
        tz = self._business_hours.tzinfo
        return datetime(value.year, value.month, value.day, tzinfo=tz).astimezone(timezone.utc)

    def _commitment_window(self, first_day: date, last_day: date) -> tuple[datetime, datetime]:
        """UTC range of anchors whose blocked window can reach the queried days."""
        reach = timedelta(minutes=self._detector.timing.total_blocked_minutes)
        start = self._local_day_start(first_day) - reach
        end = self._local_day_start(last_day + timedelta(days=1)) + reach
        return start, end

    @staticmethod
    def _build_pool(
        resource_type: str,
        windows: Iterable[ResourceAvailabilityWindow],
        blocked_dates: Iterable[BlockedDate],
        commitments: Iterable[Commitment],
    ) -> ResourcePool:
        windows_by_resource: dict[int, list[ResourceAvailabilityWindow]] = defaultdict(list)
        for window in windows:
            windows_by_resource[window.resource_id].append(window)

        blocked_by_resource: dict[int, set[date]] = defaultdict(set)
        for blocked in blocked_dates:
            blocked_by_resource[blocked.resource_id].add(blocked.blocked_date)

        commitments_by_resource: dict[int, list[Commitment]] = defaultdict(list)
        for commitment in commitments:
            if commitment.resource_id not in windows_by_resource:
                raise BusinessLogicError(
                    (
                        f"{resource_type} {commitment.resource_id} has a commitment for "
                        f"appointment {commitment.appointment_id} but no availability rows"
                    ),
                    field=f"{resource_type}s.{commitment.resource_id}",
                )
            commitments_by_resource[commitment.resource_id].append(commitment)

        return ResourcePool(
            resource_type=resource_type,
            windows_by_resource={rid: tuple(items) for rid, items in windows_by_resource.items()},
            blocked_dates_by_resource={
                rid: frozenset(items) for rid, items in blocked_by_resource.items()
            },
            commitments_by_resource={
                rid: tuple(items) for rid, items in commitments_by_resource.items()
            },
        )

    def _load_pools(
        self,
        plan_type: str,
        first_day: date,
        last_day: date,
        exclude_appointment_id: Optional[int] = None,
    ) -> tuple[ResourcePool, ResourcePool]:
        """Fetch drivers (and movers for FULL_SERVICE) with independent parallel reads."""
        window_start, window_end = self._commitment_window(first_day, last_day)
        resource_types = [RESOURCE_DRIVER]
        if plan_type == PLAN_TYPE_FULL_SERVICE:
            resource_types.append(RESOURCE_MOVER)

        with ThreadPoolExecutor(max_workers=max(1, self._settings.query_worker_count)) as executor:
            futures = {
                resource_type: (
                    executor.submit(self._repository.list_availability_windows, resource_type),
                    executor.submit(
                        self._repository.list_blocked_dates,
                        resource_type,
                        first_day,
                        last_day,
                    ),
                    executor.submit(
                        self._repository.list_commitments,
                        resource_type,
                        window_start,
                        window_end,
                        exclude_appointment_id,
                    ),
                )
                for resource_type in resource_types
            }
            pools = {
                resource_type: self._build_pool(
                    resource_type,
                    windows_future.result(),
                    blocked_future.result(),
                    commitments_future.result(),
                )
                for resource_type, (windows_future, blocked_future, commitments_future) in futures.items()
            }

        empty_movers = ResourcePool(resource_type=RESOURCE_MOVER, windows_by_resource={})
        return pools[RESOURCE_DRIVER], pools.get(RESOURCE_MOVER, empty_movers)

    @staticmethod
    def _resources_checked(drivers: ResourcePool, movers: ResourcePool) -> dict[str, int]:
        return {
            "drivers": len(drivers.windows_by_resource),
            "movers": len(movers.windows_by_resource),
        }

    # -- public queries -------------------------------------------------

    def get_monthly_availability(
        self,
        plan_type: str,
        year: int,
        month: int,
        number_of_units: int = 1,
    ) -> MonthlyAvailabilityResult:
        """Day-level availability tiers for every non-past date of the month."""
        started = time.perf_counter()
        self._validate_plan_type(plan_type)
        self._validate_year_month(year, month)
        self._validate_units(number_of_units)

        cache_key = build_cache_key(
            "monthly",
            {
                "planType": plan_type,
                "year": year,
                "month": month,
                "numberOfUnits": number_of_units,
            },
            scope=(month_scope(year, month),),
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            result = MonthlyAvailabilityResult.from_dict(cached)
            return replace(
                result,
                metadata=replace(result.metadata, cache_hit=True, query_time_ms=_elapsed_ms(started)),
            )

        logger.info(
            "Computing monthly availability | plan_type=%s | year=%s | month=%s | units=%s",
            plan_type,
            year,
            month,
            number_of_units,
        )
        generation = self._cache.generation
        first_day = date(year, month, 1)
        last_day = date(year, month, days_in_month(year, month))
        drivers, movers = self._load_pools(plan_type, first_day, last_day)
        aggregate = self._aggregator.build_monthly(
            year,
            month,
            plan_type,
            number_of_units,
            drivers,
            movers,
            self.today(),
        )

        result = MonthlyAvailabilityResult(
            days=aggregate.days,
            metadata=QueryMetadata(
                query_time_ms=_elapsed_ms(started),
                cache_hit=False,
                resources_checked=self._resources_checked(drivers, movers),
                conflicts_found=aggregate.conflicts.to_dict(),
                total_days_checked=aggregate.total_days_checked,
            ),
        )
        self._cache.set(
            cache_key,
            result.to_dict(),
            self._settings.monthly_cache_ttl_seconds,
            generation=generation,
        )
        logger.info(
            "Monthly availability computed | year=%s | month=%s | days=%s | query_time_ms=%.3f",
            year,
            month,
            len(result.days),
            result.metadata.query_time_ms,
        )
        return result

    def get_daily_time_slots(
        self,
        plan_type: str,
        target_date: date | str,
        number_of_units: int = 1,
        exclude_appointment_id: Optional[int] = None,
    ) -> DailyAvailabilityResult:
        """Slot-level bookability for one date.

        ``exclude_appointment_id`` leaves one appointment's own commitments out,
        so an appointment being edited does not conflict with itself.
        """
        started = time.perf_counter()
        self._validate_plan_type(plan_type)
        parsed_date = self._parse_date(target_date)
        self._validate_units(number_of_units)

        params: dict[str, Any] = {
            "planType": plan_type,
            "date": parsed_date.isoformat(),
            "numberOfUnits": number_of_units,
        }
        if exclude_appointment_id is not None:
            params["excludeAppointmentId"] = exclude_appointment_id
        today = self.today()
        is_past = parsed_date < today
        cache_key = build_cache_key(
            "daily",
            params,
            scope=(month_scope(parsed_date.year, parsed_date.month), parsed_date.isoformat()),
        )
        cached = None if is_past else self._cache.get(cache_key)
        if cached is not None:
            result = DailyAvailabilityResult.from_dict(cached)
            return replace(
                result,
                metadata=replace(result.metadata, cache_hit=True, query_time_ms=_elapsed_ms(started)),
            )

        if is_past:
            empty_drivers = ResourcePool(resource_type=RESOURCE_DRIVER, windows_by_resource={})
            empty_movers = ResourcePool(resource_type=RESOURCE_MOVER, windows_by_resource={})
            aggregate = self._aggregator.build_daily(
                parsed_date,
                plan_type,
                number_of_units,
                empty_drivers,
                empty_movers,
                today,
            )
            return DailyAvailabilityResult(
                date=parsed_date,
                time_slots=aggregate.slots,
                metadata=QueryMetadata(
                    query_time_ms=_elapsed_ms(started),
                    cache_hit=False,
                    resources_checked={"drivers": 0, "movers": 0},
                    conflicts_found=aggregate.conflicts.to_dict(),
                ),
            )

        logger.info(
            "Computing daily availability | plan_type=%s | date=%s | units=%s",
            plan_type,
            parsed_date.isoformat(),
            number_of_units,
        )
        generation = self._cache.generation
        drivers, movers = self._load_pools(
            plan_type,
            parsed_date,
            parsed_date,
            exclude_appointment_id,
        )
        aggregate = self._aggregator.build_daily(
            parsed_date,
            plan_type,
            number_of_units,
            drivers,
            movers,
            today,
        )
        result = DailyAvailabilityResult(
            date=parsed_date,
            time_slots=aggregate.slots,
            metadata=QueryMetadata(
                query_time_ms=_elapsed_ms(started),
                cache_hit=False,
                resources_checked=self._resources_checked(drivers, movers),
                conflicts_found=aggregate.conflicts.to_dict(),
            ),
        )
        self._cache.set(
            cache_key,
            result.to_dict(),
            self._settings.daily_cache_ttl_seconds,
            generation=generation,
        )
        logger.info(
            "Daily availability computed | date=%s | open_slots=%s | query_time_ms=%.3f",
            parsed_date.isoformat(),
            sum(1 for slot in result.time_slots if slot.available),
            result.metadata.query_time_ms,
        )
        return result

    def get_slot_conflicts(
        self,
        target_date: date | str,
        start_time: str,
        plan_type: str = PLAN_TYPE_FULL_SERVICE,
    ) -> dict[str, Any]:
        """Explain, per resource, why a slot is or is not open."""
        self._validate_plan_type(plan_type)
        parsed_date = self._parse_date(target_date)
        try:
            time_string_to_minutes(start_time)
        except ValidationError as exc:
            raise ValidationError(exc.message, field="startTime") from exc

        slot = find_slot(parsed_date, start_time, self._business_hours)
        if slot is None:
            raise ValidationError(
                f"{start_time} is not a business-hour slot start",
                field="startTime",
            )

        drivers, movers = self._load_pools(plan_type, parsed_date, parsed_date)
        day_name = day_of_week(parsed_date)

        def explain(pool: ResourcePool) -> list[dict[str, Any]]:
            rows: list[dict[str, Any]] = []
            for resource_id in pool.resource_ids:
                result = self._detector.check_resource(
                    slot,
                    day_name,
                    resource_id,
                    pool.windows_by_resource.get(resource_id, ()),
                    pool.commitments_by_resource.get(resource_id, ()),
                    pool.blocked_dates_by_resource.get(resource_id, frozenset()),
                )
                rows.append(
                    {
                        "resource_id": resource_id,
                        "is_free": result.is_free,
                        "in_weekly_schedule": result.in_weekly_schedule,
                        "conflicts": [conflict.to_dict() for conflict in result.conflicts],
                    }
                )
            return rows

        return {
            "date": parsed_date.isoformat(),
            "slot": {
                "start_time": slot.start_time_str,
                "end_time": slot.end_time_str,
                "display": slot.display,
            },
            "drivers": explain(drivers),
            "movers": explain(movers),
        }

    def warm_cache(
        self,
        dates: Iterable[date | str],
        plan_types: Iterable[str] = PLAN_TYPES,
    ) -> int:
        """Precompute single-unit daily results; returns how many were computed."""
        parsed_dates = [self._parse_date(value) for value in dates]
        selected_plans = list(plan_types)
        for plan_type in selected_plans:
            self._validate_plan_type(plan_type)

        logger.info("Warming availability cache | dates=%s", len(parsed_dates))
        computed = 0
        for target in parsed_dates:
            for plan_type in selected_plans:
                result = self.get_daily_time_slots(plan_type, target, 1)
                if not result.metadata.cache_hit:
                    computed += 1
        return computed

    def get_cache_stats(self) -> dict[str, Any]:
        return self._cache.get_stats()
