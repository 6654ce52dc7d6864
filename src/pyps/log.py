"""Logging setup for pyps."""

import logging
import sys

import structlog
from structlog.typing import BindableLogger

from pyps.config import load_settings


def configure_logging(level: str | None = None) -> None:
    """
    Configure structlog for console output on stderr.

    pyps never calls this itself; applications that want pyps' console
    format call it once at startup.

    Args:
        level: Minimum level name, e.g. "DEBUG" or "WARNING". Defaults to
            the ``PYPS_LOG_LEVEL`` setting.
    """
    if level is None:
        level = load_settings().log_level
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> BindableLogger:
    """Get a lazily bound logger for a pyps component."""
    return structlog.get_logger(component=name)
