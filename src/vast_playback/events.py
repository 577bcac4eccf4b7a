"""Playback log event constants."""

from enum import Enum


class PlaybackLogEvents(str, Enum):
    """Event type constants for structured logging."""

    # Parser events
    PARSE_STARTED = "vast.parse.started"
    PARSE_COMPLETED = "vast.parse.completed"
    PARSE_FAILED = "vast.parse.failed"

    # Source / download events
    SOURCE_FETCHED = "vast.source.fetched"
    SOURCE_FAILED = "vast.source.failed"
    DOWNLOAD_STARTED = "vast.download.started"
    DOWNLOAD_COMPLETED = "vast.download.completed"
    DOWNLOAD_FAILED = "vast.download.failed"

    # Beacon events
    BEACON_SUCCEEDED = "vast.beacon.succeeded"
    BEACON_FAILED = "vast.beacon.failed"
    BEACON_RETRY_SCHEDULED = "vast.beacon.retry_scheduled"
    BEACON_CANCELLED = "vast.beacon.cancelled"
    BEACON_URL_MISSING = "vast.beacon.url_missing"

    # Player events
    PLAYER_ATTACHED = "vast.player.attached"
    PLAYER_DETACHED = "vast.player.detached"
    PLAYBACK_STATE_CHANGED = "vast.playback.state_changed"
    PLAYBACK_QUARTILE = "vast.playback.quartile"
    PLAYBACK_LOOPED = "vast.playback.looped"
    PLAYBACK_ERROR = "vast.playback.error"
    SEEK_FAILED = "vast.playback.seek_failed"
    CAPTIONS_FAILED = "vast.captions.failed"

    # Measurement events
    MEASUREMENT_STARTED = "vast.measurement.started"
    MEASUREMENT_STOPPED = "vast.measurement.stopped"

    # Session events
    SESSION_STATE_CHANGED = "vast.session.state_changed"
    SESSION_READY = "vast.session.ready"
    SESSION_FAILED = "vast.session.failed"
    STATE_SAVED = "vast.session.state_saved"
    STATE_RESTORED = "vast.session.state_restored"

    def __str__(self) -> str:
        return self.value

    def __format__(self, format_spec: str) -> str:
        return format(self.value, format_spec)


__all__ = ["PlaybackLogEvents"]
