from __future__ import annotations

from datetime import date

from availability_engine.utils.config import get_settings
from scripts.validate_environment import _next_weekday, main


def test_next_weekday_is_strictly_after_start() -> None:
    assert _next_weekday(date(2026, 10, 18), 0) == date(2026, 10, 19)
    assert _next_weekday(date(2026, 10, 19), 0) == date(2026, 10, 26)


def test_environment_checks_report_database_and_queries(monkeypatch, capsys) -> None:
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    get_settings.cache_clear()

    main()

    output = capsys.readouterr().out
    assert "[PASS] Database + demo roster: 6 drivers, 3 movers" in output
    assert "[PASS] Cache backend: memory" in output
    assert "[PASS] Availability queries" in output
    get_settings.cache_clear()
