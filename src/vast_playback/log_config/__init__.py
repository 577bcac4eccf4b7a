"""Logging configuration package."""

from .categories import (
    LogCategory,
    LoggingConfig,
    disable,
    disable_all,
    enable_all,
    enable_only,
    filter_by_category,
    get_logging_config,
    is_category_enabled,
    set_logging_config,
)
from .main import (
    AdSessionContext,
    clear_playback_context,
    configure_logging,
    get_context_logger,
    set_playback_context,
    update_playback_progress,
)


__all__ = [
    "get_context_logger",
    "configure_logging",
    "AdSessionContext",
    "update_playback_progress",
    "set_playback_context",
    "clear_playback_context",
    "LogCategory",
    "LoggingConfig",
    "get_logging_config",
    "set_logging_config",
    "enable_only",
    "enable_all",
    "disable",
    "disable_all",
    "is_category_enabled",
    "filter_by_category",
]
