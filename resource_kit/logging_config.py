from __future__ import annotations

import logging
import os
from typing import Optional

from pythonjsonlogger import jsonlogger

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _env_level(default: int) -> int:
    raw = os.getenv("RESOURCE_KIT_LOG_LEVEL")
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


def configure_logging(
        level: Optional[int] = None,
        force_format: Optional[str] = None,
) -> None:
    """
    Configure root logger for resource-kit. Call once from the application
    entry point; library modules never configure logging themselves.

    Modes:
    - JSON (default) in prod
    - plain text (dev mode)

    Selection Order:
        1) force_format argument ("json" or "plain") if provided
        2) env var RESOURCE_KIT_LOG_FORMAT
        3) default = "json"

    The level is the `level` argument, else RESOURCE_KIT_LOG_LEVEL, else INFO.
    """

    if force_format is not None:
        format_mode = force_format
    else:
        format_mode = os.getenv("RESOURCE_KIT_LOG_FORMAT", "json").lower()

    logger = logging.getLogger()
    logger.setLevel(level if level is not None else _env_level(logging.INFO))

    handler = logging.StreamHandler()

    if format_mode == "plain":
        formatter = logging.Formatter(LOG_FORMAT)
    else:
        formatter = jsonlogger.JsonFormatter(LOG_FORMAT)

    handler.setFormatter(formatter)

    # Replace any existing handlers to avoid duplicate logs
    logger.handlers.clear()
    logger.addHandler(handler)
