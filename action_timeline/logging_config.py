"""Logging configuration with JSON formatting for production."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import Settings, get_settings

# Extra attributes timelines attach to their log records
EXTRA_FIELDS = ("timeline", "action", "state", "position")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(settings: Settings | None = None, level: str | None = None) -> None:
    """Configure logging based on environment.

    In production: structured JSON logs to stdout
    In development: human-readable logs to stdout
    """
    settings = settings or get_settings()
    level_name = (level or settings.log_level).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level_name)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level_name)

    if settings.is_production:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # asyncio logs every slow callback in debug mode
    logging.getLogger("asyncio").setLevel(logging.WARNING)
