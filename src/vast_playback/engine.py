"""Playback state machine driving the media player, beacons and measurement."""

import webbrowser
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from .beacon import BeaconDispatcher
from .captions import CaptionTrackStore
from .config import PlaybackEngineConfig
from .events import PlaybackLogEvents
from .exceptions import CaptionLoadError, MediaLoadError
from .log_config import LogCategory, get_context_logger, update_playback_progress
from .measurement import MeasurementAdapter, MeasurementSession, NoOpMeasurementAdapter
from .media import MediaPlayer, SeekCompletion
from .playback_session import PlaybackSession, PlaybackState, Quartile
from .types import AdDocument


def resolve_click_through_url(url: str | None) -> str | None:
    """Return ``url`` with an ``https://`` scheme unless it is already http(s).

    Example:
        >>> resolve_click_through_url("www.example.com/landing")
        'https://www.example.com/landing'
    """
    if not url:
        return None
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        scheme = ""
    if scheme in ("http", "https"):
        return url
    return f"https://{url}"


def format_remaining(current_time: float, duration: float) -> str:
    """Remaining time as ``MM:SS``.

    Example:
        >>> format_remaining(5.5, 30.0)
        '00:24'
    """
    remaining = int(max(0.0, duration - current_time))
    return f"{remaining // 60:02d}:{remaining % 60:02d}"


class PlaybackListener:
    """Receives engine notifications on the engine's thread.

    Override the callbacks of interest; the defaults do nothing.
    """

    def on_state_changed(self, engine: "PlaybackEngine", state: PlaybackState) -> None:
        pass

    def on_quartile_reached(self, engine: "PlaybackEngine", quartile: Quartile) -> None:
        pass

    def on_time_update(self, engine: "PlaybackEngine", current_time: float, duration: float) -> None:
        pass

    def on_mute_changed(self, engine: "PlaybackEngine", muted: bool) -> None:
        pass

    def on_user_pause_changed(self, engine: "PlaybackEngine", paused: bool) -> None:
        pass

    def on_caption_changed(self, engine: "PlaybackEngine", text: str | None) -> None:
        pass

    def on_user_interaction(self, engine: "PlaybackEngine") -> None:
        pass

    def on_error(self, engine: "PlaybackEngine", error: Exception) -> None:
        pass


class PlaybackEngine:
    """Owns the playback state for one ad and reacts to player time updates.

    States move between LOADING, PLAYING, PAUSED, FINISHED and ERROR.
    Programmatic ``play``/``pause`` (visibility driven) never fire tracking
    beacons; ``user_play``/``user_pause`` do, and also maintain the
    user-pause flag and the saved resume position. The user-pause flag
    survives ``load`` and ``detach`` so a recreated player does not
    auto-play content the user paused.

    Quartiles are evaluated on every time update while PLAYING, in
    ascending threshold order; each fires its listener callback, its
    measurement media event and its tracking beacon once per attachment.
    At the end of the media the engine seeks to zero and keeps playing.
    """

    def __init__(
        self,
        player: MediaPlayer,
        beacons: BeaconDispatcher | None = None,
        measurement: MeasurementAdapter | None = None,
        config: PlaybackEngineConfig | None = None,
        listener: PlaybackListener | None = None,
        captions: CaptionTrackStore | None = None,
        url_opener: Callable[[str], Any] | None = None,
    ):
        self.player = player
        self.beacons = beacons or BeaconDispatcher()
        self.measurement = measurement or NoOpMeasurementAdapter()
        self.config = config or PlaybackEngineConfig()
        self.listener = listener or PlaybackListener()
        self.captions = captions or CaptionTrackStore()
        self.url_opener = url_opener or webbrowser.open
        self.session = PlaybackSession()
        self.logger = get_context_logger("playback_engine", LogCategory.VIDEO)

        self._observer_token: Any = None
        self._measurement_session: MeasurementSession | None = None
        self._captions_enabled = True
        self._caption_text: str | None = None
        self._source: str | None = None

    # Read-only views

    @property
    def state(self) -> PlaybackState:
        return self.session.state

    @property
    def document(self) -> AdDocument | None:
        return self.session.document

    @property
    def current_time(self) -> float:
        return self.player.current_time if self._source is not None else 0.0

    @property
    def duration(self) -> float:
        return self.player.duration if self._source is not None else 0.0

    @property
    def muted(self) -> bool:
        return self.player.muted

    @property
    def user_paused(self) -> bool:
        return self.session.user_paused

    @property
    def saved_position(self) -> float | None:
        return self.session.saved_position

    @property
    def reached_quartiles(self) -> frozenset[Quartile]:
        return frozenset(self.session.reached_quartiles)

    @property
    def current_quartile(self) -> Quartile | None:
        return self.session.current_quartile

    @property
    def measurement_session(self) -> MeasurementSession | None:
        return self._measurement_session

    @property
    def is_attached(self) -> bool:
        return self._source is not None

    @property
    def remaining_text(self) -> str:
        return format_remaining(self.current_time, self.duration)

    # Loading

    def set_document(self, document: AdDocument) -> None:
        """Set the ad whose tracking URLs the engine fires."""
        self.session.document = document

    def load(self, source: str | Path, document: AdDocument | None = None) -> None:
        """Attach ``source`` to the player, resetting per-attachment progress.

        The player reports readiness through a callback; on success the
        engine plays, or stays paused if the user paused earlier. A load
        failure moves the engine to ERROR and is reported to the listener.
        """
        if document is not None:
            self.session.document = document
        self._release()
        self.session.reset()
        self._set_state(PlaybackState.LOADING)
        self._source = str(source)
        self.logger.info("Loading video", source=self._source)
        self.player.load(source, self._on_media_ready)

    def reload(self, source: str | Path) -> None:
        self.load(source)

    def _on_media_ready(self, error: Exception | None) -> None:
        if error is not None:
            if not isinstance(error, MediaLoadError):
                error = MediaLoadError(f"Media failed to load: {error}", source=self._source)
            self.logger.error(PlaybackLogEvents.PLAYBACK_ERROR, error=str(error))
            self._set_state(PlaybackState.ERROR)
            self.listener.on_error(self, error)
            return

        self._observer_token = self.player.add_periodic_observer(
            self.config.tick_interval_sec, self._on_time_update
        )
        self.session.duration = self.player.duration
        self.logger.info(
            PlaybackLogEvents.PLAYER_ATTACHED,
            duration=self.session.duration,
            user_paused=self.session.user_paused,
        )

        if self.session.user_paused:
            self._set_state(PlaybackState.PAUSED)
            return

        saved = self.session.saved_position
        if saved is not None and saved > 0:
            self.session.saved_position = None
            self._set_state(PlaybackState.PLAYING)
            self.seek_precisely_to(saved, completion=lambda finished: self.player.play())
        else:
            self.player.play()
            self._set_state(PlaybackState.PLAYING)

    # Programmatic control

    def play(self) -> None:
        """Start or resume playback without tracking beacons."""
        if self.state in (PlaybackState.LOADING, PlaybackState.ERROR, PlaybackState.PLAYING):
            return
        self.player.play()
        self._set_state(PlaybackState.PLAYING)
        if self.session.has_started:
            self._media_events("resume")

    def pause(self) -> None:
        """Pause playback without tracking beacons."""
        if self.state != PlaybackState.PLAYING:
            return
        self.player.pause()
        self.session.position = self.player.current_time
        self._set_state(PlaybackState.PAUSED)
        self._media_events("pause")

    # User-initiated control

    def user_play(self) -> None:
        """Resume on user request: clears the pause flag and fires the resume beacon."""
        self._set_user_paused(False)
        if self.state in (PlaybackState.LOADING, PlaybackState.ERROR, PlaybackState.PLAYING):
            return

        saved = self.session.saved_position
        if saved is not None and saved > 0:
            self.logger.info("Seeking to saved position", position=saved)
            self.session.saved_position = None
            self.seek_precisely_to(saved, completion=self._play_after_seek)
        else:
            self.player.play()
        self._set_state(PlaybackState.PLAYING)

        if self.session.has_started:
            self._media_events("resume")
            self.beacons.fire_tracking_event(self.document, "resume")

    def _play_after_seek(self, finished: bool) -> None:
        if not finished:
            self.logger.warning(
                PlaybackLogEvents.SEEK_FAILED, reason="playing from current position"
            )
        self.player.play()

    def user_pause(self) -> None:
        """Pause on user request: saves the position, sets the pause flag, fires the pause beacon."""
        if self.state == PlaybackState.LOADING:
            self._set_user_paused(True)
            return
        if self.state not in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            return

        if self.state == PlaybackState.PLAYING:
            self.player.pause()
            self._set_state(PlaybackState.PAUSED)
        self.session.position = self.player.current_time
        self.session.saved_position = self.session.position
        self.logger.info("User paused", position=self.session.saved_position)
        self._set_user_paused(True)
        self._media_events("pause")
        self.beacons.fire_tracking_event(self.document, "pause")

    def toggle_play_pause(self) -> None:
        if self.state == PlaybackState.PLAYING:
            self.user_pause()
        else:
            self.user_play()

    def set_user_paused(self, paused: bool) -> None:
        """Restore the user-pause intent from persisted state."""
        self.session.user_paused = paused

    def set_initial_playback_position(self, position: float | None) -> None:
        """Restore the saved resume position from persisted state."""
        self.session.saved_position = position

    def _set_user_paused(self, paused: bool) -> None:
        if self.session.user_paused == paused:
            return
        self.session.user_paused = paused
        self.listener.on_user_pause_changed(self, paused)

    # Mute

    def toggle_mute(self) -> None:
        """Toggle mute as a user action: fires volume change and the mute/unmute beacon."""
        if not self.is_attached:
            return
        muted = not self.player.muted
        self.player.muted = muted
        self.listener.on_mute_changed(self, muted)
        self._media_events("volume_change", 0.0 if muted else self.player.volume)
        self.beacons.fire_tracking_event(self.document, "mute" if muted else "unmute")
        self.logger.debug("Mute toggled", muted=muted)

    def set_muted(self, muted: bool) -> None:
        """Apply a mute state without tracking (restoring persisted state)."""
        self.player.muted = muted
        self.listener.on_mute_changed(self, muted)

    # Click

    def handle_click(self) -> str | None:
        """Handle a tap on the ad.

        Always fires the click interaction and click tracking beacons, then
        opens the click-through URL or, without one, toggles play/pause.

        Returns:
            The opened URL, or None when play/pause was toggled instead
        """
        self._media_events("ad_user_interaction", "click")
        if self.document is not None:
            self.beacons.fire_click_tracking(self.document)
        self.listener.on_user_interaction(self)

        url = resolve_click_through_url(self.document.click_through_url if self.document else None)
        if url is None:
            self.logger.debug("No click-through URL, toggling play/pause")
            self.toggle_play_pause()
            return None

        self.logger.debug("Opening click-through URL", url=url)
        if self.url_opener(url) is False:
            self.logger.warning("Failed to open click-through URL", url=url)
        return url

    # Seeking

    def seek_to(self, time: float) -> None:
        """Coarse seek with the player's default tolerance."""
        if not self.is_attached or time < 0:
            self.logger.error(PlaybackLogEvents.SEEK_FAILED, time=time, reason="invalid seek")
            return

        def _completion(finished: bool) -> None:
            if not finished:
                self.logger.error(PlaybackLogEvents.SEEK_FAILED, time=time)

        self.player.seek(time, completion=_completion)

    def seek_precisely_to(self, time: float, completion: SeekCompletion | None = None) -> None:
        """Zero-tolerance seek; ``completion`` always receives the success flag."""
        if not self.is_attached or time < 0:
            self.logger.error(PlaybackLogEvents.SEEK_FAILED, time=time, reason="invalid seek")
            if completion:
                completion(False)
            return

        target = round(time, self.config.precise_seek_decimals)
        self.logger.debug("Seeking precisely", time=target)

        def _completion(finished: bool) -> None:
            if not finished:
                self.logger.error(PlaybackLogEvents.SEEK_FAILED, time=target, precise=True)
            if completion:
                completion(finished)

        self.player.seek(target, tolerance_before=0.0, tolerance_after=0.0, completion=_completion)

    # Captions

    def load_captions(self, path: str | Path) -> bool:
        """Load a local caption file; failures are logged and ignored."""
        try:
            self.captions.load_file(path)
        except CaptionLoadError as e:
            self.logger.error(PlaybackLogEvents.CAPTIONS_FAILED, error=str(e))
            return False
        return True

    @property
    def has_captions(self) -> bool:
        return len(self.captions) > 0

    @property
    def captions_enabled(self) -> bool:
        return self._captions_enabled

    @captions_enabled.setter
    def captions_enabled(self, enabled: bool) -> None:
        self._captions_enabled = enabled
        self._update_captions(self.current_time)

    def _update_captions(self, time: float) -> None:
        text = self.captions.text_at(time) if self._captions_enabled else None
        if text != self._caption_text:
            self._caption_text = text
            self.listener.on_caption_changed(self, text)

    @property
    def caption_text(self) -> str | None:
        return self._caption_text

    # Measurement and impressions

    def start_measurement(self, ad_view: Any = None, obstructions: Iterable[Any] = ()) -> bool:
        """Create and start the measurement session for the current document.

        Needs the verification vendor key, script URL and parameters.

        Returns:
            True if a session was started
        """
        document = self.document
        if document is None or not document.has_verification:
            self.logger.debug("No verification data, measurement not started")
            return False

        self.stop_measurement()
        session = self.measurement.create_session(
            ad_view,
            document.verification_vendor_key,
            document.verification_script_url,
            document.verification_parameters,
        )
        session.start()
        for view in obstructions:
            session.add_obstruction(view)
        session.fire_ad_loaded()
        self._measurement_session = session
        return True

    def stop_measurement(self) -> None:
        if self._measurement_session is None:
            return
        self._measurement_session.stop()
        self._measurement_session = None

    def fire_impression(self) -> None:
        """Fire the measurement impression and every impression beacon."""
        if self._measurement_session is not None:
            self._measurement_session.fire_impression()
        if self.document is not None:
            self.beacons.fire_impressions(self.document)
        self.logger.info("Impression events fired")

    def _media_events(self, name: str, *args: Any) -> None:
        if self._measurement_session is None:
            return
        getattr(self._measurement_session.media_events, name)(*args)

    # Time updates

    def _on_time_update(self, current_time: float) -> None:
        duration = self.player.duration
        self.session.position = current_time
        self.session.duration = duration

        self._update_captions(current_time)
        if self.state == PlaybackState.PLAYING:
            self._check_quartiles(current_time, duration)
        update_playback_progress(playback_position=round(current_time, 3))
        self.listener.on_time_update(self, current_time, duration)

        if duration > 0 and current_time >= duration:
            self._handle_end_of_media()

    def _check_quartiles(self, current_time: float, duration: float) -> None:
        if duration <= 0:
            return
        progress = current_time / duration
        for quartile in Quartile.ordered():
            if progress >= quartile.threshold and self.session.mark_reached(quartile):
                self.logger.info(
                    PlaybackLogEvents.PLAYBACK_QUARTILE,
                    quartile=quartile.value,
                    position=round(current_time, 3),
                )
                self.listener.on_quartile_reached(self, quartile)
                self._fire_quartile_media_event(quartile, duration)
                self.beacons.fire_tracking_event(self.document, quartile.value)

    def _fire_quartile_media_event(self, quartile: Quartile, duration: float) -> None:
        if quartile is Quartile.START:
            volume = 0.0 if self.player.muted else self.player.volume
            self._media_events("start", duration, volume)
        elif quartile is Quartile.FIRST_QUARTILE:
            self._media_events("first_quartile")
        elif quartile is Quartile.MIDPOINT:
            self._media_events("midpoint")
        elif quartile is Quartile.THIRD_QUARTILE:
            self._media_events("third_quartile")
        else:
            self._media_events("complete")

    def _handle_end_of_media(self) -> None:
        if not self.config.loop_on_finish:
            self._set_state(PlaybackState.FINISHED)
            return

        def _completion(finished: bool) -> None:
            if finished:
                self.logger.debug(PlaybackLogEvents.PLAYBACK_LOOPED)
                self.player.play()
            else:
                self.logger.error(PlaybackLogEvents.SEEK_FAILED, time=0.0, reason="loop")
                self._set_state(PlaybackState.FINISHED)

        self.player.seek(0.0, completion=_completion)

    # Teardown

    def detach(self) -> None:
        """Release the player: stops measurement, the time observer and pending beacons.

        The user-pause flag and saved position are kept.
        """
        if self._source is None and self._measurement_session is None:
            return
        self._release()
        self.beacons.cancel_all()
        self.player.close()
        self._source = None
        self.session.reset()
        self._set_state(PlaybackState.LOADING)
        self.logger.info(PlaybackLogEvents.PLAYER_DETACHED)

    def _release(self) -> None:
        self.stop_measurement()
        if self._observer_token is not None:
            self.player.remove_observer(self._observer_token)
            self._observer_token = None
        if self._source is not None:
            self.player.pause()
        self._caption_text = None

    def _set_state(self, state: PlaybackState) -> None:
        previous = self.session.state
        self.session.state = state
        if previous == state:
            return
        self.logger.debug(
            PlaybackLogEvents.PLAYBACK_STATE_CHANGED, previous=previous.value, state=state.value
        )
        self.listener.on_state_changed(self, state)


__all__ = [
    "PlaybackEngine",
    "PlaybackListener",
    "resolve_click_through_url",
    "format_remaining",
]
