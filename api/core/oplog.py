"""
Operation logging for the admin engine.

Every event becomes one line:

    [admin][<operation>][<resource_type>] <message> key=value key=value

Used for observability only; no code path branches on what gets logged.
"""

from __future__ import annotations

import logging
import os
from typing import Any

logger = logging.getLogger("admin")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _format_data(data: dict[str, Any]) -> str:
    return " ".join(f"{key}={value!r}" for key, value in data.items())


def log_operation(level: str, operation: str, resource_type: str, message: str, **data: Any) -> None:
    log_level = _LEVELS.get((level or "").lower(), logging.INFO)
    if not logger.isEnabledFor(log_level):
        return
    suffix = _format_data(data)
    logger.log(
        log_level,
        "[admin][%s][%s] %s%s",
        operation,
        resource_type,
        message,
        f" {suffix}" if suffix else "",
    )


def configure_logging() -> None:
    """
    Root logging setup for the API process (LOG_LEVEL, default INFO).
    """
    level = os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
