"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from availability_engine.repository.availability_repository import AvailabilityRepository
from availability_engine.services.availability_service import AvailabilityService
from availability_engine.services.booking_events import BookingEventService
from availability_engine.services.cache_service import AvailabilityCache, InMemoryCacheStore
from availability_engine.utils.config import get_settings


# Business-local date is 2026-10-18 (a Sunday) for every service under test.
FIXED_NOW = datetime(2026, 10, 18, 19, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path):
    get_settings.cache_clear()
    return replace(
        get_settings(),
        database_path=tmp_path / "availability_test.db",
        business_start_hour=9,
        business_end_hour=18,
        slot_duration_minutes=60,
        business_timezone="America/Los_Angeles",
        buffer_before_minutes=60,
        service_duration_minutes=60,
        buffer_after_minutes=60,
        symmetric_buffers=True,
        cache_backend="memory",
        max_number_of_units=20,
        query_worker_count=3,
        seed_demo_data=False,
    )


@pytest.fixture
def repository(settings):
    repo = AvailabilityRepository(settings)
    repo.initialize_database()
    return repo


@pytest.fixture
def cache():
    return AvailabilityCache(InMemoryCacheStore())


@pytest.fixture
def service_factory(repository, cache, settings):
    """Build services sharing one repository; keyword overrides replace settings fields."""

    def build(cache_override=None, **overrides):
        return AvailabilityService(
            repository=repository,
            settings=replace(settings, **overrides),
            cache=cache_override or cache,
            clock=lambda: FIXED_NOW,
        )

    return build


@pytest.fixture
def events(repository, cache, settings):
    return BookingEventService(repository=repository, cache=cache, settings=settings)
