"""
Playback Configuration Module

Provides configuration classes for every playback component, with defaults
matching production behavior and a single aggregate for wiring them together.
"""

import tempfile
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .settings import Settings, get_settings


@dataclass
class VastParserConfig:
    """Configuration for VAST XML parsing."""

    # Parsing options
    recover_on_error: bool = True
    encoding: str = "utf-8"


@dataclass
class BeaconConfig:
    """
    Configuration for beacon delivery.

    Attributes:
        timeout: Per-attempt request timeout in seconds
        max_attempts: Total attempts per beacon, first one included
        backoff_base: Delay before attempt n+1 is ``backoff_base ** (n - 1)`` seconds
        user_agent: User-Agent header sent with every beacon
        retryable_status_codes: Non-5xx status codes that are retried
    """

    timeout: float = 10.0
    max_attempts: int = 3
    backoff_base: float = 2.0
    user_agent: str = "vast-playback/1.0"
    retryable_status_codes: frozenset[int] = frozenset({408, 429})

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code >= 500 or status_code in self.retryable_status_codes

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return self.backoff_base ** (attempt - 1)


@dataclass
class FetcherConfig:
    """Configuration for creative asset downloads."""

    download_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    timeout: float = 60.0
    chunk_size: int = 64 * 1024


@dataclass
class PlaybackEngineConfig:
    """
    Configuration for the playback engine.

    Attributes:
        tick_interval_sec: Periodic time-update interval requested from the media player
        precise_seek_decimals: Time resolution used for zero-tolerance seeks
        loop_on_finish: Seek to zero and keep playing when the media ends
    """

    tick_interval_sec: float = 0.1
    precise_seek_decimals: int = 3
    loop_on_finish: bool = True


@dataclass
class AdSessionConfig:
    """
    Configuration for the ad session orchestrator.

    Attributes:
        auto_load: Start the load pipeline on construction (needs a running loop)
        starts_muted: Initial mute state when nothing was persisted
        default_aspect_ratio: Viewport ratio used before layout is known
        persistence_prefix: Namespace prefix for persisted state keys
        measurement_enabled: Use the real measurement adapter when an SDK is provided
        partner_name: Measurement partner name
        partner_version: Measurement partner version
        vast_timeout: Timeout for fetching VAST documents
    """

    auto_load: bool = False
    starts_muted: bool = False
    default_aspect_ratio: float = 16.0 / 9.0
    persistence_prefix: str = "VastPlayback_"
    measurement_enabled: bool = True
    partner_name: str = "vast-playback"
    partner_version: str = "1.0.0"
    vast_timeout: float = 30.0


def _build(cls, data: dict[str, Any] | None):
    if not data:
        return cls()
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class VastPlaybackConfig:
    """Aggregate configuration for all playback components.

    Examples:
        >>> config = VastPlaybackConfig.from_dict({"beacon": {"timeout": 5.0}})
        >>> config.beacon.timeout
        5.0
    """

    parser: VastParserConfig = field(default_factory=VastParserConfig)
    beacon: BeaconConfig = field(default_factory=BeaconConfig)
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    engine: PlaybackEngineConfig = field(default_factory=PlaybackEngineConfig)
    session: AdSessionConfig = field(default_factory=AdSessionConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VastPlaybackConfig":
        """Build configuration from a nested dictionary, ignoring unknown keys."""
        fetcher_data = dict(data.get("fetcher") or {})
        if "download_dir" in fetcher_data:
            fetcher_data["download_dir"] = Path(fetcher_data["download_dir"])
        beacon_data = dict(data.get("beacon") or {})
        if "retryable_status_codes" in beacon_data:
            beacon_data["retryable_status_codes"] = frozenset(
                beacon_data["retryable_status_codes"]
            )
        return cls(
            parser=_build(VastParserConfig, data.get("parser")),
            beacon=_build(BeaconConfig, beacon_data),
            fetcher=_build(FetcherConfig, fetcher_data),
            engine=_build(PlaybackEngineConfig, data.get("engine")),
            session=_build(AdSessionConfig, data.get("session")),
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "VastPlaybackConfig":
        """Build configuration from environment/YAML settings."""
        settings = settings or get_settings()
        return cls.from_dict(settings.playback_config())


__all__ = [
    "VastParserConfig",
    "BeaconConfig",
    "FetcherConfig",
    "PlaybackEngineConfig",
    "AdSessionConfig",
    "VastPlaybackConfig",
]
