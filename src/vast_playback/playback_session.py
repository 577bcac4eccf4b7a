"""
Playback Session Domain Object

Holds the mutable playback state owned by a PlaybackEngine: the state
machine position, quartile progress and user pause intent.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .types import AdDocument


class PlaybackState(str, Enum):
    """Playback engine state enumeration."""

    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"
    ERROR = "error"


class Quartile(str, Enum):
    """Playback progress checkpoints, valued by their tracking event name."""

    START = "start"
    FIRST_QUARTILE = "firstQuartile"
    MIDPOINT = "midpoint"
    THIRD_QUARTILE = "thirdQuartile"
    COMPLETE = "complete"

    @property
    def threshold(self) -> float:
        return _THRESHOLDS[self]

    @classmethod
    def ordered(cls) -> tuple["Quartile", ...]:
        """Quartiles in ascending threshold order."""
        return _ORDERED


_THRESHOLDS = {
    Quartile.START: 0.0,
    Quartile.FIRST_QUARTILE: 0.25,
    Quartile.MIDPOINT: 0.5,
    Quartile.THIRD_QUARTILE: 0.75,
    Quartile.COMPLETE: 1.0,
}
_ORDERED = tuple(sorted(Quartile, key=lambda q: _THRESHOLDS[q]))


@dataclass
class PlaybackSession:
    """
    Mutable playback state for one attached media source.

    ``reached_quartiles`` only grows between resets. ``user_paused`` survives
    ``reset()`` so a recreated player does not auto-play content the user
    paused.
    """

    document: AdDocument | None = None
    state: PlaybackState = PlaybackState.LOADING
    position: float = 0.0
    duration: float = 0.0
    reached_quartiles: set[Quartile] = field(default_factory=set)
    current_quartile: Quartile | None = None
    user_paused: bool = False
    saved_position: float | None = None

    def reset(self) -> None:
        """Forget per-attachment progress; keep the user pause intent.

        The state itself is left to the engine so transitions are observed.
        """
        self.position = 0.0
        self.duration = 0.0
        self.reached_quartiles = set()
        self.current_quartile = None

    @property
    def has_started(self) -> bool:
        return Quartile.START in self.reached_quartiles

    @property
    def progress(self) -> float | None:
        if self.duration <= 0:
            return None
        return self.position / self.duration

    def mark_reached(self, quartile: Quartile) -> bool:
        """Record ``quartile``; False if it was already reached."""
        if quartile in self.reached_quartiles:
            return False
        self.reached_quartiles.add(quartile)
        self.current_quartile = quartile
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "position": self.position,
            "duration": self.duration,
            "reached_quartiles": [q.value for q in Quartile.ordered() if q in self.reached_quartiles],
            "current_quartile": self.current_quartile.value if self.current_quartile else None,
            "user_paused": self.user_paused,
            "saved_position": self.saved_position,
        }


__all__ = ["PlaybackState", "Quartile", "PlaybackSession"]
