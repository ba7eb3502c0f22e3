"""Tests for business-hours and job-timing validation and settings wiring."""

from __future__ import annotations

import logging
from dataclasses import replace

import pytest

from availability_engine.domain.constraints import (
    BusinessHoursConfig,
    JobTiming,
    business_hours_from_settings,
    job_timing_from_settings,
    validate_business_hours,
    validate_job_timing,
)
from availability_engine.services.cache_service import (
    InMemoryCacheStore,
    build_cache_key,
    build_cache_store,
)
from availability_engine.utils.logger import configure_logging, get_logger


# --- Baseline pass ---

def test_default_configs_pass() -> None:
    validate_business_hours(BusinessHoursConfig())
    validate_job_timing(JobTiming())
    assert JobTiming().total_blocked_minutes == 180


# --- business hours ---

@pytest.mark.parametrize(
    "overrides",
    [
        {"start_hour": 18, "end_hour": 9},
        {"start_hour": -1},
        {"end_hour": 25},
        {"slot_duration_minutes": 0},
        {"timezone": "Mars/Olympus_Mons"},
    ],
)
def test_invalid_business_hours_raise(overrides) -> None:
    with pytest.raises(ValueError):
        validate_business_hours(BusinessHoursConfig(**overrides))


# --- job timing ---

@pytest.mark.parametrize(
    "overrides",
    [
        {"buffer_before_minutes": -5},
        {"service_duration_minutes": 0},
        {"buffer_after_minutes": -1},
    ],
)
def test_invalid_job_timing_raises(overrides) -> None:
    with pytest.raises(ValueError):
        validate_job_timing(JobTiming(**overrides))


# --- settings wiring ---

def test_configs_follow_settings(settings) -> None:
    custom = replace(settings, business_start_hour=8, buffer_after_minutes=30, symmetric_buffers=False)

    assert business_hours_from_settings(custom).start_hour == 8
    timing = job_timing_from_settings(custom)
    assert timing.buffer_after_minutes == 30
    assert timing.symmetric_buffers is False


def test_settings_with_bad_hours_are_rejected(settings) -> None:
    with pytest.raises(ValueError):
        business_hours_from_settings(replace(settings, business_end_hour=settings.business_start_hour))


def test_cache_store_selection(settings) -> None:
    assert isinstance(build_cache_store(settings), InMemoryCacheStore)
    with pytest.raises(ValueError):
        build_cache_store(replace(settings, cache_backend="memcached"))


def test_cache_key_is_order_independent() -> None:
    first = build_cache_key("monthly", {"year": 2026, "planType": "DIY", "month": 11}, scope=("2026-11",))
    second = build_cache_key("monthly", {"month": 11, "year": 2026, "planType": "DIY"}, scope=("2026-11",))

    assert first == second
    assert first == "availability:monthly:2026-11:month=11|planType=DIY|year=2026"


def test_in_memory_store_expires_and_deletes_by_prefix() -> None:
    now = [100.0]
    store = InMemoryCacheStore(clock=lambda: now[0])
    store.set("availability:daily:2026-11:2026-11-02:a", {"v": 1}, ttl_seconds=10)
    store.set("availability:daily:2026-11:2026-11-03:a", {"v": 2}, ttl_seconds=60)

    assert store.delete_prefix("availability:daily:2026-11:2026-11-03:") == 1
    assert store.get("availability:daily:2026-11:2026-11-02:a") == {"v": 1}
    now[0] = 111.0
    assert store.get("availability:daily:2026-11:2026-11-02:a") is None


# --- logging ---

def test_configure_logging_can_be_reapplied() -> None:
    configure_logging(level="debug", force=True)
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("redis").level == logging.WARNING

    configure_logging(level="INFO", force=True)
    assert get_logger("availability_engine.test").getEffectiveLevel() == logging.INFO
