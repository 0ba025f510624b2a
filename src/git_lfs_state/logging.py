"""Logging configuration for the git LFS state engine."""

import logging
import sys
from typing import Any, Set

import structlog
from structlog.types import FilteringBoundLogger

from .config import config


_WARNED_KEYS: Set[str] = set()


def configure_logging() -> FilteringBoundLogger:
    """Configure structured logging for the application."""

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, config.app.log_level.upper(), logging.INFO),
    )

    # Configure structlog
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if config.app.log_format == "json":
        processors.extend([
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ])
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, config.app.log_level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a logger instance for the given name."""
    return structlog.get_logger(name)


def warn_once(key: str, message: str, **fields: Any) -> bool:
    """Emit a warning the first time ``key`` is seen in this process.

    Returns True when the warning was emitted.
    """
    if key in _WARNED_KEYS:
        return False
    _WARNED_KEYS.add(key)
    get_logger(__name__).warning(message, **fields)
    return True


def reset_warnings() -> None:
    """Forget which one-time warnings were already emitted (for testing)."""
    _WARNED_KEYS.clear()


# Initialize logging
logger = configure_logging()
