"""Validated configuration values for slot generation and job timing."""

from __future__ import annotations

from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from availability_engine.utils.config import Settings


@dataclass(frozen=True)
class BusinessHoursConfig:
    start_hour: int = 9
    end_hour: int = 18
    slot_duration_minutes: int = 60
    timezone: str = "America/Los_Angeles"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class JobTiming:
    """Buffer and service durations shared by every commitment and candidate."""

    buffer_before_minutes: int = 60
    service_duration_minutes: int = 60
    buffer_after_minutes: int = 60
    symmetric_buffers: bool = True

    @property
    def total_blocked_minutes(self) -> int:
        return self.buffer_before_minutes + self.service_duration_minutes + self.buffer_after_minutes


def validate_business_hours(config: BusinessHoursConfig) -> None:
    if not 0 <= config.start_hour < 24:
        raise ValueError("start_hour must be between 0 and 23")
    if not 0 < config.end_hour <= 24:
        raise ValueError("end_hour must be between 1 and 24")
    if config.start_hour >= config.end_hour:
        raise ValueError("start_hour must be less than end_hour")
    if config.slot_duration_minutes <= 0:
        raise ValueError("slot_duration_minutes must be > 0")
    try:
        ZoneInfo(config.timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone {config.timezone!r}") from exc


def validate_job_timing(timing: JobTiming) -> None:
    if timing.buffer_before_minutes < 0:
        raise ValueError("buffer_before_minutes must be >= 0")
    if timing.service_duration_minutes <= 0:
        raise ValueError("service_duration_minutes must be > 0")
    if timing.buffer_after_minutes < 0:
        raise ValueError("buffer_after_minutes must be >= 0")


def business_hours_from_settings(settings: Settings) -> BusinessHoursConfig:
    config = BusinessHoursConfig(
        start_hour=settings.business_start_hour,
        end_hour=settings.business_end_hour,
        slot_duration_minutes=settings.slot_duration_minutes,
        timezone=settings.business_timezone,
    )
    validate_business_hours(config)
    return config


def job_timing_from_settings(settings: Settings) -> JobTiming:
    timing = JobTiming(
        buffer_before_minutes=settings.buffer_before_minutes,
        service_duration_minutes=settings.service_duration_minutes,
        buffer_after_minutes=settings.buffer_after_minutes,
        symmetric_buffers=settings.symmetric_buffers,
    )
    validate_job_timing(timing)
    return timing
