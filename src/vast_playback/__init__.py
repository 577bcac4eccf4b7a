"""
VAST Playback Package

Client-side VAST ad playback: parsing the ad response, downloading creative
assets, driving playback through quartile milestones and firing tracking
beacons and viewability measurement events.

This package provides:
- VastParser: streaming VAST XML parsing into an immutable AdDocument
- CreativeFetcher: asset downloads to local storage
- CaptionTrackStore: caption cue lookup
- BeaconDispatcher: tracking beacons with retry and cancellation
- PlaybackEngine: the playback state machine
- AdSessionOrchestrator: end-to-end ad lifecycle with persisted state

Usage:
    from vast_playback import AdSessionOrchestrator, VastSource

    session = AdSessionOrchestrator(VastSource.from_url(url), identifier="feed-3")
    session.on_loaded = session.resume_playback
    await session.load_video_ad()
"""

from .beacon import BeaconDispatcher, BeaconOutcome
from .captions import CaptionCue, CaptionTrackStore
from .config import (
    AdSessionConfig,
    BeaconConfig,
    FetcherConfig,
    PlaybackEngineConfig,
    VastParserConfig,
    VastPlaybackConfig,
)
from .engine import PlaybackEngine, PlaybackListener, format_remaining, resolve_click_through_url
from .exceptions import (
    AdLoadError,
    AssetError,
    AssetStorageError,
    CaptionLoadError,
    CreativeDownloadError,
    InvalidSourceError,
    MediaLoadError,
    NoPlayableAdError,
    VastDurationError,
    VastParseError,
    VastPlaybackError,
)
from .fetcher import CreativeFetcher
from .measurement import (
    MeasurementAdapter,
    MeasurementSession,
    MediaEvents,
    NoOpMeasurementAdapter,
    OmidMeasurementAdapter,
    create_measurement_adapter,
)
from .media import MediaPlayer, SimulatedMediaPlayer
from .orchestrator import AdSessionOrchestrator, AdSessionState, VastSource
from .parser import VastParser
from .persistence import (
    FileStateStore,
    InMemoryStateStore,
    PersistedState,
    PersistedStateRepository,
    StateStore,
)
from .playback_session import PlaybackSession, PlaybackState, Quartile
from .time_provider import (
    RealtimeTimeProvider,
    SimulatedTimeProvider,
    TimeProvider,
    create_time_provider,
)
from .types import AdDocument, MediaRendition

__version__ = "1.0.0"

__all__ = [
    # Orchestration
    "AdSessionOrchestrator",
    "AdSessionState",
    "VastSource",
    # Components
    "VastParser",
    "CreativeFetcher",
    "CaptionTrackStore",
    "CaptionCue",
    "BeaconDispatcher",
    "BeaconOutcome",
    "PlaybackEngine",
    "PlaybackListener",
    "format_remaining",
    "resolve_click_through_url",
    # Measurement
    "MeasurementAdapter",
    "MeasurementSession",
    "MediaEvents",
    "NoOpMeasurementAdapter",
    "OmidMeasurementAdapter",
    "create_measurement_adapter",
    # Media
    "MediaPlayer",
    "SimulatedMediaPlayer",
    "TimeProvider",
    "RealtimeTimeProvider",
    "SimulatedTimeProvider",
    "create_time_provider",
    # Model
    "AdDocument",
    "MediaRendition",
    "PlaybackSession",
    "PlaybackState",
    "Quartile",
    # Persistence
    "PersistedState",
    "StateStore",
    "InMemoryStateStore",
    "FileStateStore",
    "PersistedStateRepository",
    # Configuration
    "VastPlaybackConfig",
    "VastParserConfig",
    "BeaconConfig",
    "FetcherConfig",
    "PlaybackEngineConfig",
    "AdSessionConfig",
    # Exceptions
    "VastPlaybackError",
    "VastParseError",
    "VastDurationError",
    "NoPlayableAdError",
    "InvalidSourceError",
    "AssetError",
    "CreativeDownloadError",
    "AssetStorageError",
    "CaptionLoadError",
    "MediaLoadError",
    "AdLoadError",
    "__version__",
]
