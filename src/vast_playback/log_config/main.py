"""Logging configuration and utilities."""

import logging
import sys
from typing import Any, Iterable

import structlog
from structlog.types import Processor

from .categories import (
    LogCategory,
    configure_categories,
    filter_by_category,
    get_logging_config,
)


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
    categories: Iterable[LogCategory | str] | None = None,
) -> None:
    """Install the structlog processor chain used by the package.

    Args:
        level: Minimum log level name (defaults to the global LoggingConfig level)
        json_output: Render JSON lines instead of console output
        categories: Categories to emit; all categories when ``None``
    """
    config = get_logging_config()
    if level is not None:
        config.level = level.upper()
    if json_output is not None:
        config.json_output = json_output
    configure_categories(categories)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        filter_by_category,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.json_output:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer(colors=False)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_context_logger(
    name: str, category: LogCategory | None = None
) -> structlog.BoundLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name
        category: Log category the logger's events belong to

    Returns:
        Structured logger instance
    """
    logger = structlog.get_logger(name)
    if category is not None:
        logger = logger.bind(category=category.value)
    return logger


class AdSessionContext:
    """Context manager for ad session logging context."""

    def __init__(self, **context: Any):
        """Initialize with context variables.

        Args:
            **context: Context key-value pairs
        """
        self.context = context

    def __enter__(self):
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        structlog.contextvars.unbind_contextvars(*self.context.keys())


def update_playback_progress(**kwargs: Any) -> None:
    """Update playback progress in logging context.

    Args:
        **kwargs: Progress values to update
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def set_playback_context(**kwargs: Any) -> None:
    """Set playback context in logging.

    Args:
        **kwargs: Context key-value pairs
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_playback_context(*keys: str) -> None:
    """Remove playback keys from the logging context (all keys when none given)."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()


__all__ = [
    "configure_logging",
    "get_context_logger",
    "AdSessionContext",
    "update_playback_progress",
    "set_playback_context",
    "clear_playback_context",
]
