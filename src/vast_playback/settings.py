"""
Settings Management Module

Provides pydantic-based settings with:
- YAML configuration file loading
- Environment variable overrides (VAST_PLAYBACK_*)
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Playback settings.

    Configuration hierarchy (lowest to highest precedence):
    1. YAML file (``VAST_PLAYBACK_CONFIG`` or an explicit path)
    2. Environment variables (VAST_PLAYBACK_*, nested with ``__``)

    Examples:
        >>> settings = Settings(log_level="INFO", beacon={"timeout": 5.0})
        >>> settings.playback_config()["beacon"]["timeout"]
        5.0

        Environment override:
            VAST_PLAYBACK_BEACON__TIMEOUT=5 python app.py
    """

    model_config = SettingsConfigDict(
        env_prefix="VAST_PLAYBACK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="allow",
    )

    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = False
    log_categories: list[str] | None = None

    parser: dict[str, Any] = Field(default_factory=dict)
    beacon: dict[str, Any] = Field(default_factory=dict)
    fetcher: dict[str, Any] = Field(default_factory=dict)
    engine: dict[str, Any] = Field(default_factory=dict)
    session: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def load_from_yaml(cls, config_path: Path | None = None) -> "Settings":
        """
        Load settings from a YAML configuration file.

        Environment variables still take precedence over file values.

        Args:
            config_path: Path to config file (default: ``VAST_PLAYBACK_CONFIG``)

        Returns:
            Settings instance
        """
        if config_path is None:
            env_path = os.getenv("VAST_PLAYBACK_CONFIG")
            if not env_path:
                return cls()
            config_path = Path(env_path)

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        # Init kwargs beat env vars in pydantic-settings, so drop keys the env overrides
        env_prefix = "VAST_PLAYBACK_"
        overridden = {
            key[len(env_prefix):].split("__", 1)[0].lower()
            for key in os.environ
            if key.upper().startswith(env_prefix)
        }
        file_values = {k: v for k, v in config_data.items() if k.lower() not in overridden}
        return cls(**file_values)

    def playback_config(self) -> dict[str, Any]:
        """Return the nested dictionary consumed by ``VastPlaybackConfig.from_dict``."""
        return {
            "parser": dict(self.parser),
            "beacon": dict(self.beacon),
            "fetcher": dict(self.fetcher),
            "engine": dict(self.engine),
            "session": dict(self.session),
        }


@lru_cache
def get_settings(config_path: Path | None = None) -> Settings:
    """Get cached settings instance.

    Args:
        config_path: Optional config file path

    Returns:
        Settings instance
    """
    return Settings.load_from_yaml(config_path)


__all__ = ["Settings", "get_settings"]
