"""Per-category log switches shared by every playback component."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

import structlog


class LogCategory(str, Enum):
    """Log categories used to group playback logs."""

    GENERAL = "general"
    NETWORK = "network"
    BEACON = "beacon"
    VIDEO = "video"
    VAST = "vast"
    MEASUREMENT = "measurement"
    UI = "ui"


@dataclass
class LoggingConfig:
    """Configuration for playback logging.

    Controls the global log level and which categories are emitted.

    Example:
        ```python
        config = LoggingConfig(level="INFO")
        config.enable_only(LogCategory.BEACON, LogCategory.NETWORK)
        set_logging_config(config)
        ```
    """

    level: str = "INFO"

    enabled_categories: set[LogCategory] = field(default_factory=lambda: set(LogCategory))
    """Categories whose events are emitted; everything else is dropped"""

    json_output: bool = False

    def is_enabled(self, category: LogCategory | str | None) -> bool:
        """Check whether events of ``category`` should be emitted.

        Events without a category always pass.
        """
        if category is None:
            return True
        try:
            return LogCategory(category) in self.enabled_categories
        except ValueError:
            return True

    def enable_only(self, *categories: LogCategory | str) -> None:
        self.enabled_categories = {LogCategory(c) for c in categories}

    def enable(self, *categories: LogCategory | str) -> None:
        self.enabled_categories.update(LogCategory(c) for c in categories)

    def disable(self, *categories: LogCategory | str) -> None:
        self.enabled_categories.difference_update(LogCategory(c) for c in categories)

    def enable_all(self) -> None:
        self.enabled_categories = set(LogCategory)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "LoggingConfig":
        """Create configuration from dictionary.

        Args:
            config_dict: Configuration dictionary; ``categories`` may list category names

        Returns:
            LoggingConfig instance
        """
        data = dict(config_dict)
        categories = data.pop("categories", None)
        config = cls(**data)
        if categories is not None:
            config.enable_only(*categories)
        return config

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "categories": sorted(c.value for c in self.enabled_categories),
            "json_output": self.json_output,
        }


# Global default configuration
_default_config = LoggingConfig()


def get_logging_config() -> LoggingConfig:
    """Get global logging configuration."""
    return _default_config


def set_logging_config(config: LoggingConfig) -> None:
    """Set global logging configuration.

    Args:
        config: LoggingConfig to set as global
    """
    global _default_config
    _default_config = config


def enable_only(*categories: LogCategory | str) -> None:
    _default_config.enable_only(*categories)


def disable(*categories: LogCategory | str) -> None:
    _default_config.disable(*categories)


def enable_all() -> None:
    _default_config.enable_all()


def disable_all() -> None:
    _default_config.enable_only()


def is_category_enabled(category: LogCategory | str | None) -> bool:
    return _default_config.is_enabled(category)


def filter_by_category(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor dropping events from disabled categories."""
    if not is_category_enabled(event_dict.get("category")):
        raise structlog.DropEvent
    return event_dict


def configure_categories(categories: Iterable[LogCategory | str] | None) -> None:
    """Enable exactly ``categories``, or all of them when ``None``."""
    if categories is None:
        enable_all()
    else:
        enable_only(*categories)


__all__ = [
    "LogCategory",
    "LoggingConfig",
    "get_logging_config",
    "set_logging_config",
    "enable_only",
    "disable",
    "enable_all",
    "disable_all",
    "is_category_enabled",
    "filter_by_category",
    "configure_categories",
]
