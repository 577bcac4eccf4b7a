"""
Prometheus metrics collector implementation.

Exports playback metrics through prometheus_client for scraping.
"""

from typing import Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from .base import MetricsCollector


class PrometheusMetrics(MetricsCollector):
    """
    Prometheus metrics collector.

    Counter, Histogram and Gauge objects are created on first use. The label
    names of a metric are fixed by its first call.

    Example:
        >>> from prometheus_client import CollectorRegistry
        >>> metrics = PrometheusMetrics(registry=CollectorRegistry())
        >>> metrics.increment('vast.beacon.sent', labels={'event_type': 'start'})
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Args:
            registry: Optional CollectorRegistry; the default REGISTRY otherwise.
        """
        self._registry = registry or REGISTRY
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._gauges: dict[str, Gauge] = {}

    @staticmethod
    def _sanitize_metric_name(metric: str) -> str:
        """Convert dotted names ('vast.beacon.sent') to Prometheus names."""
        return metric.replace(".", "_").replace("-", "_")

    def _get(self, cache: dict[str, Any], factory, kind: str, metric: str, labels):
        name = self._sanitize_metric_name(metric)
        if name not in cache:
            cache[name] = factory(
                name,
                f"{kind} for {metric}",
                list(labels.keys()) if labels else [],
                registry=self._registry,
            )
        instrument = cache[name]
        return instrument.labels(**labels) if labels else instrument

    def increment(self, metric, value=1, labels=None) -> None:
        self._get(self._counters, Counter, "Counter", metric, labels).inc(value)

    def histogram(self, metric, value, labels=None) -> None:
        self._get(self._histograms, Histogram, "Histogram", metric, labels).observe(value)

    def gauge(self, metric, value, labels=None) -> None:
        self._get(self._gauges, Gauge, "Gauge", metric, labels).set(value)


__all__ = ["PrometheusMetrics"]
