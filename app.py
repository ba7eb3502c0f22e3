"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository, cache and services, registers routers, and runs
startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from availability_engine.controllers.availability_controller import router as availability_router
from availability_engine.controllers.events_controller import router as events_router
from availability_engine.repository.availability_repository import AvailabilityRepository
from availability_engine.services.availability_service import AvailabilityService
from availability_engine.services.booking_events import BookingEventService
from availability_engine.services.cache_service import AvailabilityCache, build_cache_store
from availability_engine.utils.config import Settings, get_settings
from availability_engine.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every dependency is created here and exposed through app.state.
    """
    settings = settings or get_settings()

    repository = AvailabilityRepository(settings)
    cache = AvailabilityCache(build_cache_store(settings))
    availability_service = AvailabilityService(
        repository=repository,
        settings=settings,
        cache=cache,
    )
    booking_event_service = BookingEventService(
        repository=repository,
        cache=cache,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(availability_router)
    app.include_router(events_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": settings.app_version}

    app.state.settings = settings
    app.state.repository = repository
    app.state.cache = cache
    app.state.availability_service = availability_service
    app.state.booking_event_service = booking_event_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before the demo roster is seeded.
    """
    repository: AvailabilityRepository = app.state.repository

    logger.info("Startup: initializing database schema | path=%s", settings.database_path)
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo roster (skipped if drivers exist)")
        repository.seed_demo_data()

    logger.info("Startup complete | cache_backend=%s", settings.cache_backend)


# Module-level app object for uvicorn
app = create_app()
