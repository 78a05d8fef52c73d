"""Structured logging setup for pulse."""

import logging
import sys

import structlog
from structlog.typing import FilteringBoundLogger


def configure_logging(level: int = logging.INFO, stream=None) -> None:
    """
    Configure structlog for console output.

    Args:
        level: Minimum level to emit (a ``logging`` level constant).
        stream: File object to write to. Defaults to stderr.
    """
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """Return a logger bound to ``name``."""
    return structlog.get_logger(name)
