"""Metrics collection utilities for the catalogue service.

The metrics layer provides a thin abstraction over ``prometheus_client`` so the
rest of the codebase can interact with counters, gauges and summaries via a
simple, thread-safe interface. The registry offers text-based exposition that
can be scraped by Prometheus.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Summary
from prometheus_client.exposition import generate_latest


__all__ = [
    "MetricsRegistry",
    "MetricNotFoundError",
    "global_metrics",
    "track_duration",
]


class MetricNotFoundError(KeyError):
    """Raised when attempting to access a metric that is not registered."""


class MetricsRegistry:
    """Central registry for application metrics."""

    def __init__(self) -> None:
        self._registry = CollectorRegistry(auto_describe=False)
        self._metrics: Dict[str, object] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Registration helpers
    # ------------------------------------------------------------------
    def _register(self, kind: type, name: str, documentation: str, labelnames: Optional[Iterable[str]]):
        with self._lock:
            if name in self._metrics:
                metric = self._metrics[name]
                if isinstance(metric, kind):
                    return metric
                raise TypeError(f"Metric '{name}' already registered with different type")
            metric = kind(
                name,
                documentation,
                labelnames=tuple(labelnames) if labelnames else (),
                registry=self._registry,
            )
            self._metrics[name] = metric
            return metric

    def register_counter(
        self, name: str, documentation: str, *, labelnames: Optional[Iterable[str]] = None
    ) -> Counter:
        return self._register(Counter, name, documentation, labelnames)

    def register_gauge(
        self, name: str, documentation: str, *, labelnames: Optional[Iterable[str]] = None
    ) -> Gauge:
        return self._register(Gauge, name, documentation, labelnames)

    def register_summary(
        self, name: str, documentation: str, *, labelnames: Optional[Iterable[str]] = None
    ) -> Summary:
        return self._register(Summary, name, documentation, labelnames)

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------
    def get(self, name: str) -> object:
        try:
            return self._metrics[name]
        except KeyError as exc:
            raise MetricNotFoundError(name) from exc

    def expose(self) -> bytes:
        """Return the Prometheus exposition format for all metrics."""

        with self._lock:
            return generate_latest(self._registry)


_global_registry = MetricsRegistry()


def global_metrics() -> MetricsRegistry:
    """Return the singleton metrics registry used by the application."""

    return _global_registry


@contextmanager
def track_duration(metric: Summary, **labels: str) -> Iterator[None]:
    """Context manager that records execution duration into a Summary metric."""

    target = metric.labels(**labels) if labels else metric
    with target.time():
        yield
