"""Observability helpers for bulwark."""

from bulwark.observability.metrics import Counter, Gauge, Labels, MetricsRegistry

__all__ = ["Counter", "Gauge", "Labels", "MetricsRegistry"]
