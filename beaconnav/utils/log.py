"""
Logging setup for the navigation core.

Configures the ``beaconnav`` package logger once per process with a compact
JSON formatter, one object per line:

    {"t": 1760000000000, "lvl": "INFO", "name": "beaconnav.navigation",
     "msg": "Arrived at waypoint", "extra": {"index": 2}}

Level precedence: explicit ``level`` argument, then the BEACONNAV_LOG_LEVEL
environment variable, then INFO. The root logger is left alone so host
applications keep control of their own handlers.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Optional

PACKAGE_LOGGER = "beaconnav"
LEVEL_ENV_VAR = "BEACONNAV_LOG_LEVEL"


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        # Structured fields passed as logger.info(..., extra={"extra": {...}})
        if hasattr(record, "extra") and isinstance(record.extra, dict):  # type: ignore[attr-defined]
            payload["extra"] = record.extra  # type: ignore[attr-defined]
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None, stream=None) -> logging.Logger:
    """
    Configure the package logger once with JSON formatting.

    Repeated calls are no-ops unless an explicit level is given, in which
    case only the level is updated.

    Args:
        level: Level name (DEBUG/INFO/WARNING/ERROR). Overrides the env var.
        stream: Output stream for the handler (default: sys.stdout).

    Returns:
        The configured ``beaconnav`` logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    lvl_name = (level or os.environ.get(LEVEL_ENV_VAR) or "INFO").upper()
    lvl = getattr(logging, lvl_name, None)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    if getattr(logger, "_beaconnav_configured", False):
        if level is not None:
            logger.setLevel(lvl)
        return logger

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(lvl)
    logger.propagate = False
    logger._beaconnav_configured = True  # type: ignore[attr-defined]
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger under the package namespace; ensures setup."""
    setup_logging()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
