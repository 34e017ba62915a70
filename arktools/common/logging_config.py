"""Central logging configuration utilities for arktools.

Logging stays on the standard library. The CLI calls `configure_logging`
once; library modules only ask for loggers.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

_LEVEL_MAP = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


def configure_logging(level: str | int | None = None, *, force: bool = False) -> None:
    """Configure root logger.

    Order of precedence for level:
    1. Explicit `level` argument if given
    2. Environment variable `ARKTOOLS_LOG_LEVEL`
    3. Fallback to `INFO`
    """
    if level is None:
        level = os.environ.get("ARKTOOLS_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = _LEVEL_MAP.get(level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=force,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a project logger."""
    return logging.getLogger(name or "arktools")


__all__ = ["configure_logging", "get_logger"]
