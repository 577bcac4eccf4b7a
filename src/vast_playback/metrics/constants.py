"""Metric name constants for playback operations."""


class PlaybackMetrics:
    """Metric name constants."""

    # Beacon delivery
    BEACON_SENT = "vast.beacon.sent"
    BEACON_FAILED = "vast.beacon.failed"
    BEACON_RETRIED = "vast.beacon.retried"
    BEACON_CANCELLED = "vast.beacon.cancelled"
    BEACON_REQUEST_DURATION_MS = "vast.beacon.request.duration"

    # Asset downloads
    DOWNLOAD_COMPLETED = "vast.download.completed"
    DOWNLOAD_FAILED = "vast.download.failed"
    DOWNLOAD_BYTES = "vast.download.bytes"
    DOWNLOAD_DURATION_MS = "vast.download.duration"

    # Parsing
    PARSE_DURATION_MS = "vast.parser.parse.duration"

    # Sessions
    SESSION_LOADS = "vast.session.loads"
    SESSION_ACTIVE_BEACONS = "vast.session.active_beacons"


class MetricLabels:
    """Standard label names for metrics."""

    EVENT_TYPE = "event_type"  # impression, start, firstQuartile, ...
    RESULT = "result"  # succeeded, failed, exhausted, cancelled
    HTTP_STATUS = "http_status"
    ERROR_TYPE = "error_type"  # Exception class name
    FILE_TYPE = "file_type"  # MP4, VTT, ...


__all__ = ["PlaybackMetrics", "MetricLabels"]
