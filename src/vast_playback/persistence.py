"""Persisted per-ad playback state and the key-value stores backing it."""

import json
import math
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Protocol

from .events import PlaybackLogEvents
from .log_config import LogCategory, get_context_logger


@dataclass
class PersistedState:
    """Playback state carried across player recreation.

    Missing fields take their defaults when decoding, so older records stay
    readable.
    """

    last_playback_position: float = 0.0
    is_user_paused: bool = False
    closed_captions_enabled: bool = True
    muted: bool = False

    _FIELD_NAMES = {
        "lastPlaybackPosition": "last_playback_position",
        "isUserPaused": "is_user_paused",
        "closedCaptionsEnabled": "closed_captions_enabled",
        "muted": "muted",
    }

    def to_dict(self) -> dict[str, Any]:
        values = asdict(self)
        return {wire: values[attr] for wire, attr in self._FIELD_NAMES.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersistedState":
        """Build a state from wire keys; fields with the wrong type keep their default."""
        kwargs: dict[str, Any] = {}
        position = data.get("lastPlaybackPosition")
        if (
            isinstance(position, (int, float))
            and not isinstance(position, bool)
            and math.isfinite(position)
            and position >= 0
        ):
            kwargs["last_playback_position"] = float(position)
        for wire in ("isUserPaused", "closedCaptionsEnabled", "muted"):
            value = data.get(wire)
            if isinstance(value, bool):
                kwargs[cls._FIELD_NAMES[wire]] = value
        return cls(**kwargs)

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes | str) -> "PersistedState":
        """Decode a stored record.

        Raises:
            ValueError: If the record is not a JSON object
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Persisted state must be a JSON object")
        return cls.from_dict(data)


class StateStore(Protocol):
    """Minimal key-value store."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class InMemoryStateStore:
    """Dictionary-backed store, lost with the process."""

    def __init__(self):
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def keys(self) -> list[str]:
        return list(self._data)


class FileStateStore:
    """Store keeping every record in one JSON file.

    Writes go to a temporary file that replaces the original, so a crash
    never leaves a truncated store behind.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> bytes | None:
        value = self._read_all().get(key)
        return value.encode("utf-8") if isinstance(value, str) else None

    def set(self, key: str, value: bytes) -> None:
        try:
            data = self._read_all()
        except ValueError:
            data = {}
        data[key] = value.decode("utf-8")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)


class PersistedStateRepository:
    """Reads and writes PersistedState records keyed by ad identifier.

    Example:
        >>> repo = PersistedStateRepository(InMemoryStateStore())
        >>> repo.put("ad-1", PersistedState(last_playback_position=4.2))
        >>> repo.get("ad-1").last_playback_position
        4.2
    """

    def __init__(self, store: StateStore, prefix: str = "VastPlayback_"):
        self.store = store
        self.prefix = prefix
        self.logger = get_context_logger("state_repository", LogCategory.GENERAL)

    def key_for(self, identifier: str) -> str:
        return f"{self.prefix}{identifier}"

    def get(self, identifier: str) -> PersistedState | None:
        """Return the stored state, or None when absent or unreadable."""
        try:
            raw = self.store.get(self.key_for(identifier))
            if raw is None:
                return None
            state = PersistedState.from_json(raw)
        except (ValueError, TypeError, OSError) as e:
            self.logger.warning(
                "Discarding unreadable persisted state", identifier=identifier, error=str(e)
            )
            return None
        self.logger.debug(PlaybackLogEvents.STATE_RESTORED, identifier=identifier, **state.to_dict())
        return state

    def put(self, identifier: str, state: PersistedState) -> None:
        self.store.set(self.key_for(identifier), state.to_json())
        self.logger.debug(PlaybackLogEvents.STATE_SAVED, identifier=identifier, **state.to_dict())


__all__ = [
    "PersistedState",
    "StateStore",
    "InMemoryStateStore",
    "FileStateStore",
    "PersistedStateRepository",
]
