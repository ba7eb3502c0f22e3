"""Per-resource conflict detection for candidate slots."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from availability_engine.domain.constraints import JobTiming, validate_job_timing
from availability_engine.domain.models import (
    CONFLICT_BLOCKED_DATE,
    CONFLICT_BOOKING,
    CONFLICT_ONFLEET_TASK,
    CandidateSlot,
    Commitment,
    ConflictCheckResult,
    ResourceAvailabilityWindow,
    TimeConflict,
)
from availability_engine.utils.time_windows import offset_minutes, windows_overlap


def is_resource_available_in_slot(
    windows: Iterable[ResourceAvailabilityWindow],
    day_name: str,
    start_time_str: str,
    end_time_str: str,
) -> bool:
    """True when a non-blocked weekly rule for ``day_name`` contains the slot.

    Plain string comparison is enough because every value is zero-padded HH:MM.
    """
    return any(
        window.day_of_week == day_name
        and not window.is_blocked
        and window.start_time <= start_time_str
        and end_time_str <= window.end_time
        for window in windows
    )


class ConflictDetector:
    """Decides whether a single resource can take a job at a candidate slot."""

    def __init__(self, timing: Optional[JobTiming] = None) -> None:
        self._timing = timing or JobTiming()
        validate_job_timing(self._timing)

    @property
    def timing(self) -> JobTiming:
        return self._timing

    def blocked_window(self, anchor_time: datetime) -> tuple[datetime, datetime]:
        start = offset_minutes(anchor_time, -self._timing.buffer_before_minutes)
        end = offset_minutes(
            anchor_time,
            self._timing.service_duration_minutes + self._timing.buffer_after_minutes,
        )
        return start, end

    def candidate_window(self, slot: CandidateSlot) -> tuple[datetime, datetime]:
        if self._timing.symmetric_buffers:
            return self.blocked_window(slot.slot_start)
        return slot.slot_start, slot.slot_end

    def find_commitment_conflicts(
        self,
        slot: CandidateSlot,
        commitments: Iterable[Commitment],
    ) -> list[TimeConflict]:
        candidate_start, candidate_end = self.candidate_window(slot)
        conflicts: list[TimeConflict] = []
        for commitment in commitments:
            blocked_start, blocked_end = self.blocked_window(commitment.anchor_time)
            if not windows_overlap(candidate_start, candidate_end, blocked_start, blocked_end):
                continue
            conflict_type = (
                CONFLICT_ONFLEET_TASK
                if commitment.kind == CONFLICT_ONFLEET_TASK
                else CONFLICT_BOOKING
            )
            conflicts.append(
                TimeConflict(
                    start_time=blocked_start,
                    end_time=blocked_end,
                    type=conflict_type,
                    resource_id=commitment.resource_id,
                    details=(
                        f"{conflict_type} at {commitment.anchor_time.isoformat()} blocks "
                        f"{self._timing.total_blocked_minutes} minutes"
                    ),
                )
            )
        return conflicts

    def check_resource(
        self,
        slot: CandidateSlot,
        day_name: str,
        resource_id: int,
        windows: Iterable[ResourceAvailabilityWindow],
        commitments: Iterable[Commitment] = (),
        blocked_dates: Iterable[date] = (),
    ) -> ConflictCheckResult:
        in_schedule = is_resource_available_in_slot(
            windows,
            day_name,
            slot.start_time_str,
            slot.end_time_str,
        )

        conflicts: list[TimeConflict] = []
        if slot.date in set(blocked_dates):
            day_start = datetime.combine(slot.date, time.min, tzinfo=timezone.utc)
            conflicts.append(
                TimeConflict(
                    start_time=day_start,
                    end_time=day_start + timedelta(days=1),
                    type=CONFLICT_BLOCKED_DATE,
                    resource_id=resource_id,
                    details=f"Resource blocked for {slot.date.isoformat()}",
                )
            )
        conflicts.extend(self.find_commitment_conflicts(slot, commitments))

        return ConflictCheckResult(
            is_free=in_schedule and not conflicts,
            in_weekly_schedule=in_schedule,
            conflicts=tuple(conflicts),
        )
