"""HTTP controller layer for availability queries."""

from __future__ import annotations

from typing import Any, NoReturn, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from availability_engine.controllers.dependencies import get_availability_service
from availability_engine.domain.errors import (
    AvailabilityError,
    BusinessLogicError,
    DatabaseError,
    ValidationError,
)
from availability_engine.domain.models import PLAN_TYPE_FULL_SERVICE
from availability_engine.services.availability_service import AvailabilityService
from availability_engine.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["availability"])

QUERY_TYPE_MONTH = "month"
QUERY_TYPE_DATE = "date"

_ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    BusinessLogicError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DatabaseError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ResourceCountsResponse(BaseModel):
    available_movers: int = Field(ge=0)
    available_drivers: int = Field(ge=0)


class TimeSlotResponse(BaseModel):
    start_time: str
    end_time: str
    display: str
    available: bool
    availability_level: str
    resource_counts: ResourceCountsResponse


class DayAvailabilityResponse(BaseModel):
    date: str
    availability_level: str
    has_availability: bool
    resource_counts: ResourceCountsResponse


class QueryMetadataResponse(BaseModel):
    query_time_ms: float = Field(ge=0.0)
    cache_hit: bool
    resources_checked: dict[str, int]
    conflicts_found: dict[str, int]
    total_days_checked: Optional[int] = None


class MonthlyAvailabilityResponse(BaseModel):
    """``data`` maps each non-past date to its availability tier."""

    data: dict[str, str]
    days: list[DayAvailabilityResponse]
    metadata: QueryMetadataResponse


class DailyAvailabilityResponse(BaseModel):
    date: str
    data: list[TimeSlotResponse]
    metadata: QueryMetadataResponse


def raise_http_error(exc: AvailabilityError) -> NoReturn:
    """Translate an engine error into an HTTPException with structured detail."""
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("Availability request failed | kind=%s | message=%s", exc.kind, exc.message)
    raise HTTPException(status_code=status_code, detail=exc.to_dict()) from exc


def _parse_int(value: Optional[str], field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be an integer", field=field_name) from None


def _require(value: Optional[Any], field_name: str) -> Any:
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required", field=field_name)
    return value


@router.get(
    "/availability",
    response_model=Union[MonthlyAvailabilityResponse, DailyAvailabilityResponse],
    status_code=status.HTTP_200_OK,
)
def get_availability(
    query_type: Optional[str] = Query(default=None, alias="type"),
    plan_type: Optional[str] = Query(default=None, alias="planType"),
    year: Optional[str] = Query(default=None),
    month: Optional[str] = Query(default=None),
    target_date: Optional[str] = Query(default=None, alias="date"),
    number_of_units: Optional[str] = Query(default=None, alias="numberOfUnits"),
    exclude_appointment_id: Optional[str] = Query(default=None, alias="excludeAppointmentId"),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    """Monthly tiers (``type=month``) or daily slots (``type=date``)."""
    try:
        plan = _require(plan_type, "planType")
        units = _parse_int(number_of_units, "numberOfUnits")
        units = 1 if units is None else units

        if query_type == QUERY_TYPE_MONTH:
            result = service.get_monthly_availability(
                plan_type=plan,
                year=_require(_parse_int(year, "year"), "year"),
                month=_require(_parse_int(month, "month"), "month"),
                number_of_units=units,
            )
            return result.to_dict()

        if query_type == QUERY_TYPE_DATE:
            daily = service.get_daily_time_slots(
                plan_type=plan,
                target_date=_require(target_date, "date"),
                number_of_units=units,
                exclude_appointment_id=_parse_int(exclude_appointment_id, "excludeAppointmentId"),
            )
            return daily.to_dict()

        raise ValidationError(
            f"type must be '{QUERY_TYPE_MONTH}' or '{QUERY_TYPE_DATE}'",
            field="type",
        )
    except AvailabilityError as exc:
        raise_http_error(exc)


@router.get("/availability/slot_conflicts", status_code=status.HTTP_200_OK)
def get_slot_conflicts(
    target_date: Optional[str] = Query(default=None, alias="date"),
    start_time: Optional[str] = Query(default=None, alias="startTime"),
    plan_type: str = Query(default=PLAN_TYPE_FULL_SERVICE, alias="planType"),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    """Per-resource explanation of why a slot is or is not bookable."""
    try:
        return service.get_slot_conflicts(
            _require(target_date, "date"),
            _require(start_time, "startTime"),
            plan_type,
        )
    except AvailabilityError as exc:
        raise_http_error(exc)


@router.get("/availability/cache_stats", status_code=status.HTTP_200_OK)
def get_cache_stats(
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    return service.get_cache_stats()
