"""
Logger wiring for the ``cashflow`` package.

Each module asks for ``get_logger("<module>")`` and gets a child of the
``cashflow`` logger.  Handlers and the level are attached to that parent once,
by whichever of the pipeline or the web app starts first; later
``configure_logging`` calls change nothing.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union


NAMESPACE = "cashflow"

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: Union[int, str]) -> int:
    """Accept ``logging.INFO`` style ints or names such as ``"debug"``."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
) -> None:
    """Send ``cashflow`` records to stdout, and to *log_file* when given.

    Parameters
    ----------
    level:
        Minimum severity, as an int or a level name.
    log_file:
        Optional path; records are appended to it as well.
    """
    global _CONFIGURED  # noqa: PLW0603
    if _CONFIGURED:
        return

    numeric_level = _resolve_level(level)
    package_logger = logging.getLogger(NAMESPACE)
    package_logger.setLevel(numeric_level)
    package_logger.propagate = False

    _attach(package_logger, logging.StreamHandler(sys.stdout), numeric_level)
    if log_file:
        _attach(package_logger, logging.FileHandler(log_file, encoding="utf-8"), numeric_level)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Child logger ``cashflow.<name>``."""
    return logging.getLogger(f"{NAMESPACE}.{name}")
