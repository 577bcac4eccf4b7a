"""
Metrics collection interface.

Beacon delivery and asset downloads report through a MetricsCollector so
operators can plug in a backend; the default collector does nothing.
"""

from abc import ABC, abstractmethod
from collections import defaultdict


class MetricsCollector(ABC):
    """
    Abstract base class for metrics collection.

    Implementations are called from the event loop thread only.
    """

    @abstractmethod
    def increment(
        self, metric: str, value: int = 1, labels: dict[str, str] | None = None
    ) -> None:
        """
        Increment a counter metric.

        Args:
            metric: Metric name (e.g., 'vast.beacon.sent')
            value: Amount to increment (default: 1)
            labels: Optional labels (e.g., {'event_type': 'start'})
        """

    @abstractmethod
    def histogram(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """Record an observation (durations in milliseconds, sizes in bytes)."""

    @abstractmethod
    def gauge(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """Set a gauge to an absolute value."""

    def timing(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """Record a duration in milliseconds (convenience wrapper for histogram)."""
        self.histogram(metric, value, labels)


class NoOpMetrics(MetricsCollector):
    """Default collector; every call is a no-op."""

    def increment(self, metric, value=1, labels=None) -> None:
        pass

    def histogram(self, metric, value, labels=None) -> None:
        pass

    def gauge(self, metric, value, labels=None) -> None:
        pass


def _key(metric: str, labels: dict[str, str] | None) -> tuple:
    return (metric, tuple(sorted((labels or {}).items())))


class InMemoryMetrics(MetricsCollector):
    """Collector keeping values in dictionaries, for diagnostics and tests.

    Example:
        >>> metrics = InMemoryMetrics()
        >>> metrics.increment("vast.beacon.sent", labels={"event_type": "start"})
        >>> metrics.count("vast.beacon.sent", event_type="start")
        1
    """

    def __init__(self) -> None:
        self.counters: dict[tuple, int] = defaultdict(int)
        self.histograms: dict[tuple, list[float]] = defaultdict(list)
        self.gauges: dict[tuple, float] = {}

    def increment(self, metric, value=1, labels=None) -> None:
        self.counters[_key(metric, labels)] += value

    def histogram(self, metric, value, labels=None) -> None:
        self.histograms[_key(metric, labels)].append(value)

    def gauge(self, metric, value, labels=None) -> None:
        self.gauges[_key(metric, labels)] = value

    def count(self, metric: str, **labels: str) -> int:
        """Counter value for an exact label set."""
        return self.counters.get(_key(metric, labels), 0)

    def total(self, metric: str) -> int:
        """Counter value summed across all label sets."""
        return sum(v for (name, _), v in self.counters.items() if name == metric)


__all__ = ["MetricsCollector", "NoOpMetrics", "InMemoryMetrics"]
