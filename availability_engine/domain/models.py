"""Domain models for resource availability and slot computation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional


PLAN_TYPE_DIY = "DIY"
PLAN_TYPE_FULL_SERVICE = "FULL_SERVICE"
PLAN_TYPES = (PLAN_TYPE_DIY, PLAN_TYPE_FULL_SERVICE)

RESOURCE_DRIVER = "driver"
RESOURCE_MOVER = "mover"
RESOURCE_TYPES = (RESOURCE_DRIVER, RESOURCE_MOVER)

DAYS_OF_WEEK = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

CONFLICT_BOOKING = "booking"
CONFLICT_ONFLEET_TASK = "onfleet_task"
CONFLICT_BLOCKED_DATE = "blocked_date"

LEVEL_HIGH = "high"
LEVEL_MEDIUM = "medium"
LEVEL_LOW = "low"

INACTIVE_APPOINTMENT_STATUSES = ("Completed", "Canceled", "Cancelled")


@dataclass(frozen=True)
class ResourceAvailabilityWindow:
    resource_type: str
    resource_id: int
    day_of_week: str
    start_time: str
    end_time: str
    is_blocked: bool = False


@dataclass(frozen=True)
class BlockedDate:
    resource_type: str
    resource_id: int
    blocked_date: date
    reason: Optional[str] = None


@dataclass(frozen=True)
class Commitment:
    """A confirmed booking or delivery task occupying a resource around ``anchor_time``."""

    resource_type: str
    resource_id: int
    anchor_time: datetime
    kind: str
    appointment_id: Optional[int] = None


@dataclass(frozen=True)
class CandidateSlot:
    date: date
    slot_start: datetime
    slot_end: datetime
    start_time_str: str
    end_time_str: str
    display: str


@dataclass(frozen=True)
class TimeConflict:
    start_time: datetime
    end_time: datetime
    type: str
    resource_id: Optional[int] = None
    details: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "type": self.type,
            "resource_id": self.resource_id,
            "details": self.details,
        }


@dataclass(frozen=True)
class ConflictCheckResult:
    is_free: bool
    in_weekly_schedule: bool
    conflicts: tuple[TimeConflict, ...] = ()


@dataclass(frozen=True)
class DriverRequirement:
    drivers_needed: int
    movers_needed: int
    reason: str


@dataclass(frozen=True)
class ResourcePool:
    """Snapshot of one resource pool for the queried window."""

    resource_type: str
    windows_by_resource: dict[int, tuple[ResourceAvailabilityWindow, ...]]
    blocked_dates_by_resource: dict[int, frozenset[date]] = field(default_factory=dict)
    commitments_by_resource: dict[int, tuple[Commitment, ...]] = field(default_factory=dict)

    @property
    def resource_ids(self) -> list[int]:
        return sorted(self.windows_by_resource)


@dataclass
class ConflictTally:
    blocked_dates: int = 0
    existing_bookings: int = 0
    onfleet_tasks: int = 0

    def record(self, conflicts: tuple[TimeConflict, ...]) -> None:
        for conflict in conflicts:
            if conflict.type == CONFLICT_BLOCKED_DATE:
                self.blocked_dates += 1
            elif conflict.type == CONFLICT_ONFLEET_TASK:
                self.onfleet_tasks += 1
            else:
                self.existing_bookings += 1

    def to_dict(self) -> dict[str, int]:
        return {
            "blocked_dates": self.blocked_dates,
            "existing_bookings": self.existing_bookings,
            "onfleet_tasks": self.onfleet_tasks,
        }


@dataclass(frozen=True)
class SlotAvailability:
    start_time: str
    end_time: str
    display: str
    available: bool
    availability_level: str
    available_movers: int
    available_drivers: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "display": self.display,
            "available": self.available,
            "availability_level": self.availability_level,
            "resource_counts": {
                "available_movers": self.available_movers,
                "available_drivers": self.available_drivers,
            },
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SlotAvailability":
        counts = payload["resource_counts"]
        return cls(
            start_time=str(payload["start_time"]),
            end_time=str(payload["end_time"]),
            display=str(payload["display"]),
            available=bool(payload["available"]),
            availability_level=str(payload["availability_level"]),
            available_movers=int(counts["available_movers"]),
            available_drivers=int(counts["available_drivers"]),
        )


@dataclass(frozen=True)
class DayAvailability:
    date: date
    availability_level: str
    has_availability: bool
    available_movers: int
    available_drivers: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "availability_level": self.availability_level,
            "has_availability": self.has_availability,
            "resource_counts": {
                "available_movers": self.available_movers,
                "available_drivers": self.available_drivers,
            },
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "DayAvailability":
        counts = payload["resource_counts"]
        return cls(
            date=date.fromisoformat(str(payload["date"])),
            availability_level=str(payload["availability_level"]),
            has_availability=bool(payload["has_availability"]),
            available_movers=int(counts["available_movers"]),
            available_drivers=int(counts["available_drivers"]),
        )


@dataclass(frozen=True)
class QueryMetadata:
    query_time_ms: float
    cache_hit: bool
    resources_checked: dict[str, int]
    conflicts_found: dict[str, int]
    total_days_checked: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "query_time_ms": self.query_time_ms,
            "cache_hit": self.cache_hit,
            "resources_checked": dict(self.resources_checked),
            "conflicts_found": dict(self.conflicts_found),
        }
        if self.total_days_checked is not None:
            payload["total_days_checked"] = self.total_days_checked
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "QueryMetadata":
        total_days = payload.get("total_days_checked")
        return cls(
            query_time_ms=float(payload["query_time_ms"]),
            cache_hit=bool(payload["cache_hit"]),
            resources_checked={k: int(v) for k, v in payload["resources_checked"].items()},
            conflicts_found={k: int(v) for k, v in payload["conflicts_found"].items()},
            total_days_checked=int(total_days) if total_days is not None else None,
        )


@dataclass(frozen=True)
class MonthlyAvailabilityResult:
    days: tuple[DayAvailability, ...]
    metadata: QueryMetadata

    @property
    def tiers(self) -> dict[str, str]:
        return {day.date.isoformat(): day.availability_level for day in self.days}

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.tiers,
            "days": [day.to_dict() for day in self.days],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "MonthlyAvailabilityResult":
        return cls(
            days=tuple(DayAvailability.from_dict(item) for item in payload["days"]),
            metadata=QueryMetadata.from_dict(payload["metadata"]),
        )


@dataclass(frozen=True)
class DailyAvailabilityResult:
    date: date
    time_slots: tuple[SlotAvailability, ...]
    metadata: QueryMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "data": [slot.to_dict() for slot in self.time_slots],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "DailyAvailabilityResult":
        return cls(
            date=date.fromisoformat(str(payload["date"])),
            time_slots=tuple(SlotAvailability.from_dict(item) for item in payload["data"]),
            metadata=QueryMetadata.from_dict(payload["metadata"]),
        )
