"""
Media playback primitive.

``MediaPlayer`` is the contract the playback engine drives. Platform
integrations wrap their native player behind it. ``SimulatedMediaPlayer``
advances a virtual playhead and is used for headless playback and tests.
"""

import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .exceptions import MediaLoadError
from .log_config import LogCategory, get_context_logger
from .time_provider import RealtimeTimeProvider, TimeProvider


ReadyCallback = Callable[[Exception | None], None]
SeekCompletion = Callable[[bool], None]
TimeCallback = Callable[[float], None]


class MediaPlayer(ABC):
    """Contract of the underlying media player."""

    @abstractmethod
    def load(self, source: str | Path, on_ready: ReadyCallback) -> None:
        """Start loading ``source``.

        ``on_ready`` is invoked exactly once: with None when the media is
        ready to play, or with the load error.
        """

    @abstractmethod
    def play(self) -> None: ...

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def seek(
        self,
        to: float,
        tolerance_before: float | None = None,
        tolerance_after: float | None = None,
        completion: SeekCompletion | None = None,
    ) -> None:
        """Move the playhead. ``None`` tolerances let the player pick the nearest keyframe."""

    @property
    @abstractmethod
    def current_time(self) -> float: ...

    @property
    @abstractmethod
    def duration(self) -> float: ...

    @property
    @abstractmethod
    def is_playing(self) -> bool: ...

    @property
    @abstractmethod
    def muted(self) -> bool: ...

    @muted.setter
    @abstractmethod
    def muted(self, value: bool) -> None: ...

    @property
    @abstractmethod
    def volume(self) -> float: ...

    @abstractmethod
    def add_periodic_observer(self, interval: float, callback: TimeCallback) -> Any:
        """Call ``callback(current_time)`` every ``interval`` seconds; returns a token."""

    @abstractmethod
    def remove_observer(self, token: Any) -> None: ...

    @abstractmethod
    def close(self) -> None:
        """Stop playback and release the media."""


class SimulatedMediaPlayer(MediaPlayer):
    """Virtual-playhead media player.

    The playhead moves only through ``advance()``, either called directly or
    from ``run()`` which ticks on a TimeProvider. Playback stops at the end
    of the media, like a native player.

    Args:
        duration: Media duration in seconds
        volume: Player volume (0.0 - 1.0)
        fail_load: Report a load error instead of becoming ready
        fail_seeks: Complete every seek with ``False`` without moving
        time_provider: Clock used by ``run()``

    Example:
        >>> player = SimulatedMediaPlayer(duration=30.0)
        >>> player.load("/tmp/ad.mp4", on_ready=lambda error: player.play())
        >>> player.advance(1.0)
        >>> player.current_time
        1.0
    """

    def __init__(
        self,
        duration: float = 30.0,
        volume: float = 1.0,
        fail_load: bool = False,
        fail_seeks: bool = False,
        time_provider: TimeProvider | None = None,
    ):
        self._media_duration = duration
        self._volume = volume
        self._muted = False
        self._position = 0.0
        self._playing = False
        self._loaded = False
        self._closed = False
        self.fail_load = fail_load
        self.fail_seeks = fail_seeks
        self.source: str | None = None
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.seek_log: list[tuple[float, float | None, float | None]] = []
        self._observers: dict[int, tuple[float, TimeCallback]] = {}
        self._tokens = itertools.count(1)
        self.logger = get_context_logger("simulated_media_player", LogCategory.VIDEO)

    def load(self, source, on_ready) -> None:
        self.source = str(source)
        self._position = 0.0
        self._playing = False
        self._closed = False
        if self.fail_load:
            self._loaded = False
            on_ready(MediaLoadError("Media failed to load", source=self.source))
            return
        self._loaded = True
        on_ready(None)

    def play(self) -> None:
        if self._loaded:
            self._playing = True

    def pause(self) -> None:
        self._playing = False

    def seek(self, to, tolerance_before=None, tolerance_after=None, completion=None) -> None:
        self.seek_log.append((to, tolerance_before, tolerance_after))
        if self.fail_seeks or not self._loaded:
            if completion:
                completion(False)
            return
        self._position = min(max(to, 0.0), self._media_duration)
        if completion:
            completion(True)

    @property
    def current_time(self) -> float:
        return self._position

    @property
    def duration(self) -> float:
        return self._media_duration if self._loaded else 0.0

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def muted(self) -> bool:
        return self._muted

    @muted.setter
    def muted(self, value: bool) -> None:
        self._muted = value

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def add_periodic_observer(self, interval, callback) -> int:
        token = next(self._tokens)
        self._observers[token] = (interval, callback)
        return token

    def remove_observer(self, token) -> None:
        self._observers.pop(token, None)

    def close(self) -> None:
        self._playing = False
        self._loaded = False
        self._closed = True
        self._observers.clear()

    def advance(self, seconds: float) -> None:
        """Move the playhead forward if playing, then notify observers once."""
        if self._playing:
            self._position = min(self._position + seconds, self._media_duration)
            if self._position >= self._media_duration:
                self._playing = False
        for _, callback in list(self._observers.values()):
            callback(self._position)

    def tick_interval(self) -> float:
        intervals = [interval for interval, _ in self._observers.values()]
        return min(intervals) if intervals else 0.1

    async def run(self, max_time: float | None = None) -> None:
        """Drive the playhead from the time provider until closed or ``max_time`` elapses."""
        start = self.time_provider.current_time()
        while not self._closed:
            if max_time is not None and self.time_provider.elapsed_time(start) >= max_time:
                break
            interval = self.tick_interval()
            await self.time_provider.sleep(interval)
            self.advance(interval)


__all__ = ["MediaPlayer", "SimulatedMediaPlayer", "ReadyCallback", "SeekCompletion", "TimeCallback"]
