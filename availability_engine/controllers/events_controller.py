"""HTTP controller layer for booking mutations that invalidate availability."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from availability_engine.controllers.availability_controller import raise_http_error
from availability_engine.controllers.dependencies import get_booking_event_service
from availability_engine.domain.errors import AvailabilityError
from availability_engine.domain.models import PLAN_TYPES, RESOURCE_TYPES
from availability_engine.services.booking_events import BookingEventService


router = APIRouter(prefix="/events", tags=["events"])


class CreateAppointmentRequest(BaseModel):
    appointment_time: datetime
    plan_type: str
    number_of_units: int = Field(gt=0)
    mover_id: Optional[int] = Field(default=None, gt=0)
    driver_id: Optional[int] = Field(default=None, gt=0)

    @field_validator("appointment_time")
    @classmethod
    def validate_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("appointment_time must include a timezone offset")
        return value

    @field_validator("plan_type")
    @classmethod
    def validate_plan_type(cls, value: str) -> str:
        if value not in PLAN_TYPES:
            raise ValueError(f"plan_type must be one of {', '.join(PLAN_TYPES)}")
        return value


class AppointmentCreatedResponse(BaseModel):
    appointment_id: int = Field(gt=0)


class AssignDeliveryTaskRequest(BaseModel):
    driver_id: Optional[int] = Field(default=None, gt=0)


class BlockedDateRequest(BaseModel):
    resource_type: str
    resource_id: int = Field(gt=0)
    blocked_date: date
    reason: Optional[str] = None

    @field_validator("resource_type")
    @classmethod
    def validate_resource_type(cls, value: str) -> str:
        if value not in RESOURCE_TYPES:
            raise ValueError(f"resource_type must be one of {', '.join(RESOURCE_TYPES)}")
        return value


class BlockedDateCreatedResponse(BaseModel):
    blocked_date_id: int = Field(gt=0)


class ResourceStatusRequest(BaseModel):
    status: str = Field(min_length=1, max_length=32)


@router.post(
    "/appointments",
    response_model=AppointmentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_appointment(
    payload: CreateAppointmentRequest,
    service: BookingEventService = Depends(get_booking_event_service),
) -> AppointmentCreatedResponse:
    try:
        appointment_id = service.create_appointment(
            payload.appointment_time,
            payload.plan_type,
            payload.number_of_units,
            mover_id=payload.mover_id,
            driver_id=payload.driver_id,
        )
    except AvailabilityError as exc:
        raise_http_error(exc)
    return AppointmentCreatedResponse(appointment_id=appointment_id)


@router.post("/appointments/{appointment_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
def cancel_appointment(
    appointment_id: int,
    service: BookingEventService = Depends(get_booking_event_service),
) -> None:
    try:
        service.cancel_appointment(appointment_id)
    except AvailabilityError as exc:
        raise_http_error(exc)


@router.post("/appointments/{appointment_id}/complete", status_code=status.HTTP_204_NO_CONTENT)
def complete_appointment(
    appointment_id: int,
    service: BookingEventService = Depends(get_booking_event_service),
) -> None:
    try:
        service.complete_appointment(appointment_id)
    except AvailabilityError as exc:
        raise_http_error(exc)


@router.post("/delivery_tasks/{task_id}/assign", status_code=status.HTTP_204_NO_CONTENT)
def assign_delivery_task(
    task_id: int,
    payload: AssignDeliveryTaskRequest,
    service: BookingEventService = Depends(get_booking_event_service),
) -> None:
    try:
        service.assign_delivery_task(task_id, payload.driver_id)
    except AvailabilityError as exc:
        raise_http_error(exc)


@router.post(
    "/blocked_dates",
    response_model=BlockedDateCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_blocked_date(
    payload: BlockedDateRequest,
    service: BookingEventService = Depends(get_booking_event_service),
) -> BlockedDateCreatedResponse:
    try:
        blocked_id = service.add_blocked_date(
            payload.resource_type,
            payload.resource_id,
            payload.blocked_date,
            payload.reason,
        )
    except AvailabilityError as exc:
        raise_http_error(exc)
    return BlockedDateCreatedResponse(blocked_date_id=blocked_id)


@router.delete("/blocked_dates/{blocked_date_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_blocked_date(
    blocked_date_id: int,
    service: BookingEventService = Depends(get_booking_event_service),
) -> None:
    try:
        removed = service.remove_blocked_date(blocked_date_id)
    except AvailabilityError as exc:
        raise_http_error(exc)
    if removed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "NotFound", "message": f"blocked date {blocked_date_id} not found"},
        )


@router.post(
    "/resources/{resource_type}/{resource_id}/status",
    status_code=status.HTTP_204_NO_CONTENT,
)
def set_resource_status(
    resource_type: str,
    resource_id: int,
    payload: ResourceStatusRequest,
    service: BookingEventService = Depends(get_booking_event_service),
) -> None:
    try:
        service.set_resource_status(resource_type, resource_id, payload.status)
    except AvailabilityError as exc:
        raise_http_error(exc)
