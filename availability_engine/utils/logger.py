"""Logging setup shared by the engine, the API and the scripts."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from availability_engine.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Client libraries that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "urllib3", "redis")

_configured = False


def configure_logging(level: Optional[str] = None, force: bool = False) -> None:
    """Install the stdout handler once; ``force`` re-applies it with a new level."""

    global _configured
    if _configured and not force:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout, force=force)

    quiet_level = max(logging.getLogger().level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
