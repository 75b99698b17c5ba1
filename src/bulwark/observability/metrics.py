"""In-process metrics for resilience events.

Counters and gauges keyed by label sets, collected as plain dicts so they
can be exported to Prometheus, StatsD or a health endpoint by the host
application. Registries are always constructed and passed explicitly.

Metrics recorded by the toolkit:

====================================== ======= ==========================
name                                   type    labels
====================================== ======= ==========================
circuit_breaker_state                  gauge   breaker (0/1/2)
circuit_breaker_transitions_total      counter breaker, to_state
circuit_breaker_rejections_total       counter breaker
degradation_fallbacks_total            counter name
degradation_failures_total             counter name
====================================== ======= ==========================

Example:
    >>> registry = MetricsRegistry()
    >>> registry.counter("degradation_fallbacks_total").labels(name="search").inc()
    >>> registry.collect()[0]["value"]
    1.0
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Labels:
    """Immutable label set for metrics."""

    _labels: tuple[tuple[str, str], ...]

    @classmethod
    def from_dict(cls, d: dict[str, str] | None) -> "Labels":
        """Create from dictionary."""
        if not d:
            return cls(())
        return cls(tuple(sorted(d.items())))

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return dict(self._labels)


class Metric(ABC):
    """Base class for metrics."""

    kind: str = "metric"

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._values: dict[Labels, float] = {}
        self._lock = threading.Lock()

    def _get(self, labels: Labels) -> float:
        with self._lock:
            return self._values.get(labels, 0.0)

    def collect(self) -> list[dict[str, Any]]:
        """Collect metric values for export."""
        with self._lock:
            return [
                {
                    "name": self.name,
                    "type": self.kind,
                    "labels": labels.to_dict(),
                    "value": value,
                }
                for labels, value in self._values.items()
            ]

    @abstractmethod
    def labels(self, **kwargs: str) -> Any:
        """Get a child bound to specific label values."""
        ...


class Counter(Metric):
    """A monotonically increasing counter."""

    kind = "counter"

    def labels(self, **kwargs: str) -> "CounterChild":
        """Get counter with specific labels."""
        return CounterChild(self, Labels.from_dict(kwargs))

    def inc(self, value: float = 1.0) -> None:
        """Increment counter (no labels)."""
        self.labels().inc(value)

    def _inc(self, labels: Labels, value: float) -> None:
        with self._lock:
            self._values[labels] = self._values.get(labels, 0.0) + value


class CounterChild:
    """Counter with fixed labels."""

    def __init__(self, counter: Counter, labels: Labels):
        self._counter = counter
        self._labels = labels

    def inc(self, value: float = 1.0) -> None:
        """Increment the counter."""
        if value < 0:
            raise ValueError("Counter can only increase")
        self._counter._inc(self._labels, value)

    @property
    def value(self) -> float:
        return self._counter._get(self._labels)


class Gauge(Metric):
    """A value that can go up or down."""

    kind = "gauge"

    def labels(self, **kwargs: str) -> "GaugeChild":
        """Get gauge with specific labels."""
        return GaugeChild(self, Labels.from_dict(kwargs))

    def set(self, value: float) -> None:
        """Set gauge value (no labels)."""
        self.labels().set(value)

    def _set(self, labels: Labels, value: float) -> None:
        with self._lock:
            self._values[labels] = value


class GaugeChild:
    """Gauge with fixed labels."""

    def __init__(self, gauge: Gauge, labels: Labels):
        self._gauge = gauge
        self._labels = labels

    def set(self, value: float) -> None:
        """Set the gauge value."""
        self._gauge._set(self._labels, value)

    @property
    def value(self) -> float:
        return self._gauge._get(self._labels)


class MetricsRegistry:
    """Registry of metrics for collection and export."""

    def __init__(self):
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, cls: type[Metric], name: str, description: str) -> Metric:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = cls(name, description)
                self._metrics[name] = metric
            elif not isinstance(metric, cls):
                raise TypeError(
                    f"Metric {name!r} already registered as {metric.kind}"
                )
            return metric

    def counter(self, name: str, description: str = "") -> Counter:
        """Get or create a counter."""
        return self._get_or_create(Counter, name, description)  # type: ignore[return-value]

    def gauge(self, name: str, description: str = "") -> Gauge:
        """Get or create a gauge."""
        return self._get_or_create(Gauge, name, description)  # type: ignore[return-value]

    def get(self, name: str) -> Metric | None:
        with self._lock:
            return self._metrics.get(name)

    def collect(self) -> list[dict[str, Any]]:
        """Collect all metric samples."""
        with self._lock:
            metrics = list(self._metrics.values())
        samples: list[dict[str, Any]] = []
        for metric in metrics:
            samples.extend(metric.collect())
        return samples

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()
