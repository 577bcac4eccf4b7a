"""End-to-end ad session: load, asset download, engine lifecycle and persistence."""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import httpx

from .beacon import BeaconDispatcher
from .config import VastPlaybackConfig
from .engine import PlaybackEngine, PlaybackListener
from .events import PlaybackLogEvents
from .exceptions import (
    AdLoadError,
    AssetError,
    CreativeDownloadError,
    InvalidSourceError,
    NoPlayableAdError,
    VastPlaybackError,
)
from .fetcher import CreativeFetcher
from .http_client_manager import get_download_http_client
from .log_config import AdSessionContext, LogCategory, get_context_logger
from .measurement import MeasurementAdapter, MeasurementSdk, create_measurement_adapter
from .media import MediaPlayer, SimulatedMediaPlayer
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, PlaybackMetrics
from .parser import VastParser
from .persistence import (
    InMemoryStateStore,
    PersistedState,
    PersistedStateRepository,
    StateStore,
)
from .playback_session import PlaybackState
from .types import AdDocument, MediaRendition


class AdSessionState(str, Enum):
    """Orchestrator lifecycle state."""

    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class VastSource:
    """Where the VAST document comes from: a URL to fetch or inline XML."""

    kind: str
    value: str

    @classmethod
    def from_url(cls, url: str) -> "VastSource":
        return cls("url", url)

    @classmethod
    def from_xml(cls, xml: str) -> "VastSource":
        return cls("xml", xml)

    @classmethod
    def coerce(cls, source: "VastSource | str") -> "VastSource":
        """Accept a VastSource, inline XML (starts with ``<``) or a URL string."""
        if isinstance(source, VastSource):
            return source
        if source.lstrip().startswith("<"):
            return cls.from_xml(source)
        return cls.from_url(source)

    @property
    def is_url(self) -> bool:
        return self.kind == "url"


def aspect_ratio_for(width: float, height: float) -> float | None:
    """Viewport aspect ratio, or None until the viewport has a height."""
    if height <= 0:
        return None
    return width / max(height, 1)


class AdSessionOrchestrator:
    """Coordinates one ad from VAST source to playback.

    ``load_video_ad()`` runs the load pipeline in the background: parse,
    select a rendition, download the video, download captions (best
    effort), restore persisted state, then READY. Any failure before READY
    ends in a single ERROR state carrying an ``AdLoadError``; ``retry()``
    restarts from scratch.

    Once READY, ``resume_playback()`` creates and attaches a PlaybackEngine
    and ``pause_and_detach()`` tears it down while remembering position,
    mute, captions and the user-pause intent, so the engine can be
    recreated (feed scrolling) without losing continuity.

    Callbacks (all optional, invoked on the event loop thread):
        on_loaded(), on_started(), on_paused(), on_tapped(),
        on_error(AdLoadError), on_progress(current_time, duration),
        on_user_pause_state_changed(paused)
    """

    def __init__(
        self,
        source: VastSource | str,
        identifier: str | None = None,
        config: VastPlaybackConfig | None = None,
        *,
        parser: VastParser | None = None,
        fetcher: CreativeFetcher | None = None,
        beacons: BeaconDispatcher | None = None,
        measurement: MeasurementAdapter | None = None,
        measurement_sdk: MeasurementSdk | None = None,
        state_store: StateStore | None = None,
        player_factory: Callable[[], MediaPlayer] | None = None,
        http_client: httpx.AsyncClient | None = None,
        metrics: MetricsCollector | None = None,
        url_opener: Callable[[str], Any] | None = None,
        ad_view: Any = None,
        obstructions: Iterable[Any] = (),
    ):
        self.source = VastSource.coerce(source)
        self.identifier = identifier
        self.config = config or VastPlaybackConfig()
        self.metrics = metrics or NoOpMetrics()
        self.http_client = http_client
        self.parser = parser or VastParser(self.config.parser)
        self.fetcher = fetcher or CreativeFetcher(
            client=http_client, config=self.config.fetcher, metrics=self.metrics
        )
        self.beacons = beacons or BeaconDispatcher(config=self.config.beacon, metrics=self.metrics)
        session_config = self.config.session
        self.measurement = measurement or create_measurement_adapter(
            enabled=session_config.measurement_enabled,
            sdk=measurement_sdk,
            partner_name=session_config.partner_name,
            partner_version=session_config.partner_version,
        )
        self.repository = PersistedStateRepository(
            state_store or InMemoryStateStore(), prefix=session_config.persistence_prefix
        )
        self.player_factory = player_factory or SimulatedMediaPlayer
        self.url_opener = url_opener
        self.ad_view = ad_view
        self.obstructions = tuple(obstructions)
        self.logger = get_context_logger("ad_session", LogCategory.GENERAL).bind(
            ad_identifier=identifier
        )

        # Callbacks
        self.on_loaded: Callable[[], None] | None = None
        self.on_started: Callable[[], None] | None = None
        self.on_paused: Callable[[], None] | None = None
        self.on_tapped: Callable[[], None] | None = None
        self.on_error: Callable[[AdLoadError], None] | None = None
        self.on_progress: Callable[[float, float], None] | None = None
        self.on_user_pause_state_changed: Callable[[bool], None] | None = None

        self._state = AdSessionState.NOT_LOADED
        self._error: AdLoadError | None = None
        self._document: AdDocument | None = None
        self._rendition: MediaRendition | None = None
        self._video_path: Path | None = None
        self._caption_path: Path | None = None
        self._engine: PlaybackEngine | None = None
        self._load_task: asyncio.Task | None = None
        self._listener = _EngineListener(self)
        self._viewport_ratio: float | None = None
        self._impression_fired = False

        # Carried across engine recreation and persisted
        self._last_position = 0.0
        self._user_paused = False
        self._captions_enabled = True
        self._muted = session_config.starts_muted

        if session_config.auto_load:
            try:
                self.load_video_ad()
            except RuntimeError:
                self.logger.warning("auto_load requested without a running event loop")

    # Read-only views

    @property
    def state(self) -> AdSessionState:
        return self._state

    @property
    def error(self) -> AdLoadError | None:
        return self._error

    @property
    def document(self) -> AdDocument | None:
        return self._document

    @property
    def rendition(self) -> MediaRendition | None:
        return self._rendition

    @property
    def engine(self) -> PlaybackEngine | None:
        return self._engine

    @property
    def video_path(self) -> Path | None:
        return self._video_path

    @property
    def caption_path(self) -> Path | None:
        return self._caption_path

    @property
    def is_playing(self) -> bool:
        return self._engine is not None and self._engine.state == PlaybackState.PLAYING

    @property
    def is_muted(self) -> bool:
        return self._engine.muted if self._engine is not None else self._muted

    @property
    def is_user_paused(self) -> bool:
        return self._user_paused

    @property
    def captions_enabled(self) -> bool:
        return self._captions_enabled

    @property
    def current_time(self) -> float:
        return self._engine.current_time if self._engine is not None else 0.0

    @property
    def duration(self) -> float:
        return self._engine.duration if self._engine is not None else 0.0

    @property
    def viewport_aspect_ratio(self) -> float:
        return self._viewport_ratio or self.config.session.default_aspect_ratio

    def set_viewport_size(self, width: float, height: float) -> None:
        """Record the layout size used to pick the closest rendition."""
        self._viewport_ratio = aspect_ratio_for(width, height)

    # Document loading and selection

    async def load(self, source: VastSource | str) -> AdDocument:
        """Fetch (for URLs) and parse a VAST document.

        Parsing runs in a worker thread to keep the event loop responsive.

        Raises:
            InvalidSourceError: If the URL cannot be requested
            CreativeDownloadError: If the VAST request fails
        """
        source = VastSource.coerce(source)
        if not source.is_url:
            return await asyncio.to_thread(self.parser.parse, source.value)

        url = source.value.strip()
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise InvalidSourceError(f"Invalid VAST URL: {url}", source=url)

        client = self.http_client or get_download_http_client(
            timeout=self.config.session.vast_timeout
        )
        try:
            response = await client.get(url, timeout=self.config.session.vast_timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.logger.error(PlaybackLogEvents.SOURCE_FAILED, url=url[:100], error=str(e))
            raise CreativeDownloadError(f"VAST request failed: {str(e)}", url=url) from e
        if not 200 <= response.status_code < 300:
            self.logger.error(
                PlaybackLogEvents.SOURCE_FAILED, url=url[:100], status_code=response.status_code
            )
            raise CreativeDownloadError(
                f"VAST request returned HTTP {response.status_code}",
                url=url,
                http_status=response.status_code,
            )
        self.logger.info(
            PlaybackLogEvents.SOURCE_FETCHED, url=url[:100], content_length=len(response.content)
        )
        return await asyncio.to_thread(self.parser.parse, response.content)

    @staticmethod
    def select_rendition(
        document: AdDocument, viewport_aspect_ratio: float | None = None
    ) -> MediaRendition | None:
        """Pick the mp4 rendition whose aspect ratio is closest to the viewport's.

        Renditions without both dimensions score as infinitely far. Ties go
        to the earliest rendition in document order.
        """
        target = viewport_aspect_ratio if viewport_aspect_ratio else 16.0 / 9.0
        candidates = [r for r in document.media_renditions if r.is_mp4]
        if not candidates:
            return None

        def distance(rendition: MediaRendition) -> float:
            ratio = rendition.aspect_ratio
            return float("inf") if ratio is None else abs(ratio - target)

        return min(candidates, key=distance)

    @staticmethod
    def resolve_caption_url(
        document: AdDocument, rendition: MediaRendition | None
    ) -> str | None:
        """Rendition caption, else the document-level caption, else None."""
        if rendition is not None and rendition.caption_url:
            return rendition.caption_url
        return document.closed_caption_url

    # Load pipeline

    def load_video_ad(self) -> asyncio.Task | None:
        """Start the load pipeline unless a load already happened.

        Returns:
            The running load task, or None if the session is not NOT_LOADED
        """
        if self._state != AdSessionState.NOT_LOADED:
            return None
        if self._load_task is not None and not self._load_task.done():
            self._set_state(AdSessionState.LOADING)
            return self._load_task
        task = asyncio.get_running_loop().create_task(self._perform_load())
        self._set_state(AdSessionState.LOADING)
        self._load_task = task
        return task

    def preload_assets(self) -> asyncio.Task | None:
        """Run the load pipeline without entering the LOADING state."""
        if self._state != AdSessionState.NOT_LOADED:
            return None
        if self._load_task is None or self._load_task.done():
            self._load_task = asyncio.get_running_loop().create_task(self._perform_load())
        return self._load_task

    async def _perform_load(self) -> None:
        with AdSessionContext(ad_identifier=self.identifier or "anonymous"):
            try:
                await self._load_assets()
            except asyncio.CancelledError:
                self.logger.info("Ad load cancelled")
                raise
            except Exception as e:
                message = e.message if isinstance(e, VastPlaybackError) else str(e)
                error = AdLoadError(f"Failed to load video ad: {message}", cause=e)
                self.logger.error(
                    PlaybackLogEvents.SESSION_FAILED,
                    error=str(error),
                    error_type=type(e).__name__,
                )
                self.metrics.increment(
                    PlaybackMetrics.SESSION_LOADS, labels={MetricLabels.RESULT: "failed"}
                )
                self._fail(error)
                return

        self.metrics.increment(
            PlaybackMetrics.SESSION_LOADS, labels={MetricLabels.RESULT: "succeeded"}
        )
        self.logger.info(PlaybackLogEvents.SESSION_READY, summary=self._document.summary())
        self._set_state(AdSessionState.READY)
        if self.on_loaded:
            self.on_loaded()

    async def _load_assets(self) -> None:
        document = await self.load(self.source)
        self._document = document

        rendition = self.select_rendition(document, self.viewport_aspect_ratio)
        video_url = rendition.url if rendition is not None else document.video_url
        if not video_url:
            raise NoPlayableAdError("VAST document contains no playable media")
        self._rendition = rendition or document.rendition_for_url(video_url)

        self.logger.info("Downloading video", url=video_url[:100])
        self._video_path = await self.fetcher.fetch(video_url)

        caption_url = self.resolve_caption_url(document, self._rendition)
        if caption_url:
            try:
                self._caption_path = await self.fetcher.fetch(caption_url)
            except AssetError as e:
                self.logger.warning("Closed captions unavailable", error=str(e))
                self._caption_path = None

        if self.identifier:
            self._restore_state(self.identifier)

    def _fail(self, error: AdLoadError) -> None:
        self._error = error
        self._set_state(AdSessionState.ERROR)
        if self.on_error:
            self.on_error(error)

    def retry(self) -> asyncio.Task | None:
        """Discard everything loaded and run the pipeline again."""
        self._teardown_engine(save=False)
        self._error = None
        self._document = None
        self._rendition = None
        self._video_path = None
        self._caption_path = None
        self._impression_fired = False
        self._set_state(AdSessionState.NOT_LOADED)
        return self.load_video_ad()

    # Engine lifecycle

    def resume_playback(self) -> None:
        """Show the ad: create and attach an engine, or resume the existing one."""
        if self._state != AdSessionState.READY:
            self.logger.debug("resume_playback ignored", state=self._state.value)
            return

        engine = self._engine
        if engine is None:
            self._setup_engine()
            return
        if self._user_paused:
            return
        if self._last_position > 0:
            engine.seek_precisely_to(self._last_position, completion=lambda _: engine.play())
        else:
            engine.play()

    def _setup_engine(self) -> None:
        document = self._document
        engine = PlaybackEngine(
            self.player_factory(),
            beacons=self.beacons,
            measurement=self.measurement,
            config=self.config.engine,
            listener=self._listener,
            url_opener=self.url_opener,
        )
        engine.set_document(document)
        engine.captions_enabled = self._captions_enabled
        engine.set_user_paused(self._user_paused)
        if self._last_position > 0:
            engine.set_initial_playback_position(self._last_position)
        self._engine = engine

        engine.load(self._video_path)
        if self._engine is not engine:
            return
        engine.set_muted(self._muted)
        if self._caption_path is not None:
            engine.load_captions(self._caption_path)
        engine.start_measurement(self.ad_view, self.obstructions)
        if not self._impression_fired:
            engine.fire_impression()
            self._impression_fired = True

    def pause_and_detach(self) -> None:
        """Hide the ad: remember playback state and drop the engine."""
        if self._engine is None:
            self.logger.debug("pause_and_detach called without an engine")
            return
        self._teardown_engine(save=True)

    def _teardown_engine(self, save: bool) -> None:
        engine = self._engine
        if engine is None:
            return
        self._captions_enabled = engine.captions_enabled
        self._muted = engine.muted
        if engine.is_attached:
            saved = engine.saved_position
            self._last_position = saved if saved is not None and saved > 0 else engine.current_time
        self._engine = None
        engine.detach()
        if save and self.identifier:
            self.save_state()

    # Playback commands

    def play(self) -> None:
        """Resume playback and clear the user-pause intent."""
        engine = self._engine
        if engine is None:
            return
        self._set_user_paused(False)
        engine.set_user_paused(False)
        saved = engine.saved_position
        if saved is not None and saved > 0 and engine.state == PlaybackState.PAUSED:
            engine.set_initial_playback_position(None)
            engine.seek_precisely_to(saved, completion=lambda _: engine.play())
        else:
            engine.play()

    def pause(self) -> None:
        """Pause playback and record the user-pause intent."""
        if self._engine is None:
            return
        self._set_user_paused(True)
        self._last_position = self._engine.current_time
        self._engine.set_user_paused(True)
        self._engine.pause()

    def seek_to(self, time: float) -> None:
        if self._engine is not None:
            self._engine.seek_to(time)
        self._last_position = time

    def toggle_mute(self) -> None:
        if self._engine is not None:
            self._engine.toggle_mute()

    def toggle_captions(self) -> bool:
        """Flip caption display; returns the new setting."""
        self._captions_enabled = not self._captions_enabled
        if self._engine is not None:
            self._engine.captions_enabled = self._captions_enabled
        return self._captions_enabled

    def handle_tap(self) -> str | None:
        """Forward a tap on the ad to the engine; returns the opened URL if any."""
        if self._engine is None:
            return None
        return self._engine.handle_click()

    def close(self) -> None:
        """End the session: cancel any load in flight, detach and persist."""
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        if self._engine is not None:
            self._teardown_engine(save=True)
        elif self.identifier and self._state == AdSessionState.READY:
            self.save_state()

    # Persistence

    def save_state(self) -> None:
        if not self.identifier:
            return
        self.repository.put(
            self.identifier,
            PersistedState(
                last_playback_position=self._last_position,
                is_user_paused=self._user_paused,
                closed_captions_enabled=self._captions_enabled,
                muted=self._muted,
            ),
        )

    def _restore_state(self, identifier: str) -> None:
        state = self.repository.get(identifier)
        if state is None:
            return
        self._last_position = state.last_playback_position
        self._user_paused = state.is_user_paused
        self._captions_enabled = state.closed_captions_enabled
        self._muted = state.muted
        self.logger.info(PlaybackLogEvents.STATE_RESTORED, **state.to_dict())

    # Internal state

    def _set_state(self, state: AdSessionState) -> None:
        if state == self._state:
            return
        self.logger.debug(
            PlaybackLogEvents.SESSION_STATE_CHANGED, previous=self._state.value, state=state.value
        )
        self._state = state

    def _set_user_paused(self, paused: bool) -> None:
        if paused == self._user_paused:
            return
        self._user_paused = paused
        if self.on_user_pause_state_changed:
            self.on_user_pause_state_changed(paused)


class _EngineListener(PlaybackListener):
    """Forwards engine notifications to the orchestrator's callbacks."""

    def __init__(self, orchestrator: AdSessionOrchestrator):
        self.orchestrator = orchestrator

    def on_state_changed(self, engine, state) -> None:
        o = self.orchestrator
        if state == PlaybackState.PLAYING and o.on_started:
            o.on_started()
        elif state == PlaybackState.PAUSED and o.on_paused:
            o.on_paused()

    def on_time_update(self, engine, current_time, duration) -> None:
        self.orchestrator._last_position = current_time
        if self.orchestrator.on_progress:
            self.orchestrator.on_progress(current_time, duration)

    def on_user_interaction(self, engine) -> None:
        if self.orchestrator.on_tapped:
            self.orchestrator.on_tapped()

    def on_mute_changed(self, engine, muted) -> None:
        self.orchestrator._muted = muted

    def on_user_pause_changed(self, engine, paused) -> None:
        self.orchestrator._set_user_paused(paused)

    def on_error(self, engine, error) -> None:
        o = self.orchestrator
        o._engine = None
        engine.detach()
        o._fail(AdLoadError(f"Video playback failed: {error}", cause=error))


__all__ = ["AdSessionOrchestrator", "AdSessionState", "VastSource", "aspect_ratio_for"]
