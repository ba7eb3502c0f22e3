"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from availability_engine.services.availability_service import AvailabilityService
from availability_engine.services.booking_events import BookingEventService


def get_availability_service(request: Request) -> AvailabilityService:
    service = getattr(request.app.state, "availability_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Availability service is not initialized",
        )
    return service


def get_booking_event_service(request: Request) -> BookingEventService:
    service = getattr(request.app.state, "booking_event_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booking event service is not initialized",
        )
    return service
