"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process-wide settings; tests derive variants with ``dataclasses.replace``."""

    app_name: str = field(default_factory=lambda: os.getenv("APP_NAME", "Storage Availability Engine"))
    app_version: str = field(default_factory=lambda: os.getenv("APP_VERSION", "1.0.0"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    database_path: Path = field(
        default_factory=lambda: Path(os.getenv("DATABASE_PATH", "data/availability.db"))
    )
    seed_demo_data: bool = field(default_factory=lambda: _env_bool("SEED_DEMO_DATA", True))

    business_start_hour: int = field(default_factory=lambda: _env_int("BUSINESS_START_HOUR", 9))
    business_end_hour: int = field(default_factory=lambda: _env_int("BUSINESS_END_HOUR", 18))
    slot_duration_minutes: int = field(default_factory=lambda: _env_int("SLOT_DURATION_MINUTES", 60))
    business_timezone: str = field(
        default_factory=lambda: os.getenv("BUSINESS_TIMEZONE", "America/Los_Angeles")
    )

    buffer_before_minutes: int = field(default_factory=lambda: _env_int("JOB_BUFFER_BEFORE_MINUTES", 60))
    service_duration_minutes: int = field(
        default_factory=lambda: _env_int("JOB_SERVICE_DURATION_MINUTES", 60)
    )
    buffer_after_minutes: int = field(default_factory=lambda: _env_int("JOB_BUFFER_AFTER_MINUTES", 60))
    symmetric_buffers: bool = field(default_factory=lambda: _env_bool("JOB_SYMMETRIC_BUFFERS", True))

    cache_backend: str = field(default_factory=lambda: os.getenv("CACHE_BACKEND", "memory"))
    redis_url: str = field(default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    monthly_cache_ttl_seconds: int = field(
        default_factory=lambda: _env_int("MONTHLY_AVAILABILITY_TTL_SECONDS", 300)
    )
    daily_cache_ttl_seconds: int = field(
        default_factory=lambda: _env_int("DAILY_AVAILABILITY_TTL_SECONDS", 120)
    )

    max_number_of_units: int = field(default_factory=lambda: _env_int("MAX_NUMBER_OF_UNITS", 20))
    query_worker_count: int = field(default_factory=lambda: _env_int("QUERY_WORKER_COUNT", 3))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
