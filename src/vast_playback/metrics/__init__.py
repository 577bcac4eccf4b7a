"""
Metrics collection for playback components.

Example:
    >>> from vast_playback.metrics import NoOpMetrics, PlaybackMetrics
    >>> metrics = NoOpMetrics()
    >>> metrics.increment(PlaybackMetrics.BEACON_SENT)  # No-op
"""

from .base import InMemoryMetrics, MetricsCollector, NoOpMetrics
from .constants import MetricLabels, PlaybackMetrics
from .prometheus import PrometheusMetrics

__all__ = [
    "MetricsCollector",
    "NoOpMetrics",
    "InMemoryMetrics",
    "PrometheusMetrics",
    "PlaybackMetrics",
    "MetricLabels",
]
