"""
Shared pytest fixtures for bulwark tests.

This module provides:
- A controllable monotonic clock for breaker and limiter timing
- A recording sleep that advances the fake clock instead of waiting
- Scripted async operations that fail N times before succeeding
- A fresh metrics registry per test
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from bulwark.observability.metrics import MetricsRegistry


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and advances a FakeClock."""

    def __init__(self, clock: FakeClock | None = None):
        self.delays: list[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


class ScriptedOperation:
    """Zero-argument async operation that fails ``failures`` times, then returns ``value``."""

    def __init__(self, failures: int = 0, value: Any = "ok", error: Exception | None = None):
        self.failures = failures
        self.value = value
        self.error = error or ConnectionError("downstream unavailable")
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def scripted() -> Callable[..., ScriptedOperation]:
    """Factory: scripted(failures=2, value=42, error=...)"""
    return ScriptedOperation


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()
