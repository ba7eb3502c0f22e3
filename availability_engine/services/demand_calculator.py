"""Driver and mover demand per plan type."""

from __future__ import annotations

from availability_engine.domain.errors import ValidationError
from availability_engine.domain.models import (
    PLAN_TYPE_DIY,
    PLAN_TYPE_FULL_SERVICE,
    PLAN_TYPES,
    DriverRequirement,
)


REASON_DIY_ALL_UNITS = "diy_all_units"
REASON_NONE = "none"
REASON_FULL_SERVICE_EXTRA_UNITS = "full_service_extra_units"


def required_movers(plan_type: str) -> int:
    return 1 if plan_type == PLAN_TYPE_FULL_SERVICE else 0


def calculate_driver_requirements(
    plan_type: str,
    number_of_units: int,
    has_mover_available: bool = False,
) -> DriverRequirement:
    """Resource demand for one booking.

    DIY customers self-load, so every unit needs its own driver. A
    FULL_SERVICE crew covers the first unit; each further unit still needs a
    driver. Without a mover a FULL_SERVICE booking cannot proceed at all and
    needs no drivers.
    """
    if plan_type not in PLAN_TYPES:
        raise ValidationError(f"planType must be one of {', '.join(PLAN_TYPES)}", field="planType")
    if number_of_units <= 0:
        raise ValidationError("numberOfUnits must be a positive integer", field="numberOfUnits")

    if plan_type == PLAN_TYPE_DIY:
        return DriverRequirement(
            drivers_needed=number_of_units,
            movers_needed=0,
            reason=REASON_DIY_ALL_UNITS,
        )

    if not has_mover_available:
        return DriverRequirement(drivers_needed=0, movers_needed=1, reason=REASON_NONE)

    return DriverRequirement(
        drivers_needed=max(0, number_of_units - 1),
        movers_needed=1,
        reason=REASON_FULL_SERVICE_EXTRA_UNITS,
    )
