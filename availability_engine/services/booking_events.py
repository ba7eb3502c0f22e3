"""Write-side booking events that keep cached availability consistent."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from availability_engine.domain.constraints import (
    BusinessHoursConfig,
    JobTiming,
    business_hours_from_settings,
    job_timing_from_settings,
)
from availability_engine.domain.errors import ValidationError
from availability_engine.domain.models import RESOURCE_DRIVER, RESOURCE_MOVER, BlockedDate
from availability_engine.repository.availability_repository import AvailabilityRepository
from availability_engine.services.cache_service import (
    AvailabilityCache,
    daily_prefix,
    monthly_prefix,
    namespace_prefix,
)
from availability_engine.utils.config import Settings, get_settings
from availability_engine.utils.logger import get_logger


logger = get_logger(__name__)

STATUS_CANCELED = "Canceled"
STATUS_COMPLETED = "Completed"


class BookingEventService:
    """Commits booking mutations and invalidates the cache entries they affect."""

    def __init__(
        self,
        repository: AvailabilityRepository,
        cache: AvailabilityCache,
        settings: Optional[Settings] = None,
        *,
        business_hours: Optional[BusinessHoursConfig] = None,
        job_timing: Optional[JobTiming] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository
        self._cache = cache
        self._business_hours = business_hours or business_hours_from_settings(self._settings)
        self._timing = job_timing or job_timing_from_settings(self._settings)

    def affected_dates(self, anchor_time: datetime) -> list[date]:
        """Business-local dates touched by the blocked window around ``anchor_time``."""
        tz = self._business_hours.tzinfo
        start = (anchor_time - timedelta(minutes=self._timing.buffer_before_minutes)).astimezone(tz)
        end = (
            anchor_time
            + timedelta(
                minutes=self._timing.service_duration_minutes + self._timing.buffer_after_minutes
            )
        ).astimezone(tz)
        dates: list[date] = []
        current = start.date()
        while current <= end.date():
            dates.append(current)
            current += timedelta(days=1)
        return dates

    def invalidate_dates(self, dates: Iterable[date]) -> int:
        """Drop monthly entries of each affected month and daily entries of each date."""
        unique_dates = sorted(set(dates))
        months = sorted({(value.year, value.month) for value in unique_dates})
        removed = 0
        for year, month in months:
            removed += self._cache.invalidate_prefix(monthly_prefix(year, month))
        for value in unique_dates:
            removed += self._cache.invalidate_prefix(daily_prefix(value))
        return removed

    def invalidate_all(self) -> int:
        return self._cache.invalidate_prefix(namespace_prefix())

    def _invalidate_for_anchor(self, anchor_time: datetime) -> int:
        return self.invalidate_dates(self.affected_dates(anchor_time))

    def _require_appointment(self, appointment_id: int):
        appointment = self._repository.get_appointment(appointment_id)
        if appointment is None:
            raise ValidationError(
                f"appointment {appointment_id} does not exist",
                field="appointmentId",
            )
        return appointment

    def _require_resource(self, resource_type: str, resource_id: int, field: str):
        resource = self._repository.get_resource(resource_type, resource_id)
        if resource is None:
            raise ValidationError(f"{resource_type} {resource_id} does not exist", field=field)
        return resource

    def _require_schedulable(self, resource_type: str, resource_id: int, field: str) -> None:
        """A committed resource must be active and have at least one weekly rule."""
        resource = self._require_resource(resource_type, resource_id, field)
        if not resource.is_active:
            raise ValidationError(f"{resource_type} {resource_id} is not active", field=field)
        if resource.window_count == 0:
            raise ValidationError(
                f"{resource_type} {resource_id} has no weekly availability",
                field=field,
            )

    def create_appointment(
        self,
        appointment_time: datetime,
        plan_type: str,
        number_of_units: int,
        *,
        mover_id: Optional[int] = None,
        driver_id: Optional[int] = None,
    ) -> int:
        if mover_id is not None:
            self._require_schedulable(RESOURCE_MOVER, mover_id, "moverId")
        if driver_id is not None:
            self._require_schedulable(RESOURCE_DRIVER, driver_id, "driverId")
        appointment_id = self._repository.create_appointment(
            appointment_time,
            plan_type,
            number_of_units,
            mover_id=mover_id,
            driver_id=driver_id,
        )
        self._invalidate_for_anchor(appointment_time)
        logger.info(
            "Appointment created | appointment_id=%s | plan_type=%s | time=%s",
            appointment_id,
            plan_type,
            appointment_time.isoformat(),
        )
        return appointment_id

    def _change_status(self, appointment_id: int, status: str) -> None:
        appointment = self._require_appointment(appointment_id)
        self._repository.update_appointment_status(appointment_id, status)
        self._invalidate_for_anchor(appointment.appointment_time)
        logger.info(
            "Appointment status changed | appointment_id=%s | from=%s | to=%s",
            appointment_id,
            appointment.status,
            status,
        )

    def cancel_appointment(self, appointment_id: int) -> None:
        self._change_status(appointment_id, STATUS_CANCELED)

    def complete_appointment(self, appointment_id: int) -> None:
        self._change_status(appointment_id, STATUS_COMPLETED)

    def assign_delivery_task(self, task_id: int, driver_id: Optional[int]) -> None:
        if driver_id is not None:
            self._require_schedulable(RESOURCE_DRIVER, driver_id, "driverId")
        appointment_id = self._repository.assign_delivery_task_driver(task_id, driver_id)
        if appointment_id is None:
            raise ValidationError(f"delivery task {task_id} does not exist", field="taskId")
        appointment = self._require_appointment(appointment_id)
        self._invalidate_for_anchor(appointment.appointment_time)
        logger.info(
            "Delivery task assigned | task_id=%s | driver_id=%s | appointment_id=%s",
            task_id,
            driver_id,
            appointment_id,
        )

    def add_blocked_date(
        self,
        resource_type: str,
        resource_id: int,
        blocked_date: date,
        reason: Optional[str] = None,
    ) -> int:
        self._require_resource(resource_type, resource_id, "resourceId")
        blocked_id = self._repository.add_blocked_date(
            resource_type,
            resource_id,
            blocked_date,
            reason,
        )
        self.invalidate_dates([blocked_date])
        logger.info(
            "Blocked date added | resource_type=%s | resource_id=%s | date=%s",
            resource_type,
            resource_id,
            blocked_date.isoformat(),
        )
        return blocked_id

    def remove_blocked_date(self, blocked_date_id: int) -> Optional[BlockedDate]:
        removed = self._repository.delete_blocked_date(blocked_date_id)
        if removed is None:
            logger.warning("Blocked date not found | blocked_date_id=%s", blocked_date_id)
            return None
        self.invalidate_dates([removed.blocked_date])
        logger.info(
            "Blocked date removed | resource_type=%s | resource_id=%s | date=%s",
            removed.resource_type,
            removed.resource_id,
            removed.blocked_date.isoformat(),
        )
        return removed

    def set_weekly_availability(
        self,
        resource_type: str,
        resource_id: int,
        windows: Iterable[tuple[str, str, str]],
    ) -> None:
        # A weekly rule can affect any date, so every entry goes.
        self._repository.replace_weekly_availability(resource_type, resource_id, windows)
        removed = self.invalidate_all()
        logger.info(
            "Weekly availability replaced | resource_type=%s | resource_id=%s | invalidated=%s",
            resource_type,
            resource_id,
            removed,
        )

    def set_resource_status(self, resource_type: str, resource_id: int, status: str) -> None:
        """Activate or retire a driver or mover; only active resources are pooled."""
        if not self._repository.set_resource_status(resource_type, resource_id, status):
            raise ValidationError(f"{resource_type} {resource_id} does not exist", field="resourceId")
        removed = self.invalidate_all()
        logger.info(
            "Resource status changed | resource_type=%s | resource_id=%s | status=%s | invalidated=%s",
            resource_type,
            resource_id,
            status,
            removed,
        )
