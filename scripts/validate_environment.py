#!/usr/bin/env python3
"""Validate local availability engine environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, timedelta
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from availability_engine.domain.errors import AvailabilityError
from availability_engine.repository.availability_repository import AvailabilityRepository
from availability_engine.services.availability_service import AvailabilityService
from availability_engine.services.cache_service import AvailabilityCache, InMemoryCacheStore, build_cache_store
from availability_engine.utils.config import get_settings

SEPARATOR_LINE = "=" * 44

PACKAGE_SPECS = [
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
    ("pydantic", "pydantic"),
    ("dotenv", "python-dotenv"),
    ("redis", "redis"),
    ("pandas", "pandas"),
    ("requests", "requests"),
]


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def _next_weekday(start: date, weekday: int) -> date:
    return start + timedelta(days=(weekday - start.weekday()) % 7 or 7)


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="availability-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    import_errors: list[str] = []
    for module_name, dist_name in PACKAGE_SPECS:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        base_settings = get_settings()
        validation_settings = replace(
            base_settings,
            database_path=Path(temp_dir) / "availability_validation.db",
        )
        repository = AvailabilityRepository(validation_settings)

        # CHECK 3: Database initialization and demo roster
        try:
            repository.initialize_database()
            repository.seed_demo_data()
            drivers = repository.count_rows("Drivers")
            movers = repository.count_rows("Movers")
            ok, line = _print_result("Database + demo roster", True, f": {drivers} drivers, {movers} movers")
        except AvailabilityError as exc:
            ok, line = _print_result("Database + demo roster", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Configured cache backend reachable
        try:
            store = build_cache_store(validation_settings)
            stats = store.stats()
            ok, line = _print_result("Cache backend", True, f": {stats['backend']}")
        except (AvailabilityError, ValueError) as exc:
            ok, line = _print_result("Cache backend", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Monthly and daily queries
        service = AvailabilityService(
            repository=repository,
            settings=validation_settings,
            cache=AvailabilityCache(InMemoryCacheStore()),
        )
        try:
            target = _next_weekday(service.today(), 0)
            monthly = service.get_monthly_availability("FULL_SERVICE", target.year, target.month, 1)
            daily = service.get_daily_time_slots("DIY", target, 1)
            open_slots = sum(1 for slot in daily.time_slots if slot.available)
            ok, line = _print_result(
                "Availability queries",
                True,
                f": {len(monthly.days)} days, {open_slots}/{len(daily.time_slots)} open slots on {target}",
            )
        except AvailabilityError as exc:
            ok, line = _print_result("Availability queries", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Availability Engine Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
