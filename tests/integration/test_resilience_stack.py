"""End-to-end tests composing limiter, timeout, retry, breaker and fallback."""

import asyncio

import pytest

import bulwark
from bulwark import (
    CircuitState,
    RateLimiter,
    ResiliencePolicies,
    RetryConfig,
    TimeoutExpired,
    is_transient,
    with_timeout,
)
from bulwark.execution.presets import KNOWLEDGE, VALIDATION


class FlakySearch:
    """Search backend that hangs for its first ``hangs`` calls."""

    def __init__(self, hangs: int):
        self.hangs = hangs
        self.calls = 0

    async def query(self, text: str) -> list[str]:
        self.calls += 1
        if self.calls <= self.hangs:
            await asyncio.sleep(1.0)
        return [f"doc-for-{text}"]


class TestResilienceStack:
    """Full stack through the public package API."""

    def test_version(self):
        assert bulwark.__version__ == "0.1.0"

    @pytest.mark.asyncio
    async def test_timed_out_attempt_is_retried(self):
        backend = FlakySearch(hangs=1)
        policies = ResiliencePolicies()

        result = await policies.protect(
            KNOWLEDGE,
            lambda: with_timeout(backend.query("warfarin"), 0.05),
            lambda: [],
            retry_config=RetryConfig(
                max_attempts=2,
                base_delay=0.0,
                jitter=False,
                is_retryable=is_transient,
            ),
        )

        assert result.degraded is False
        assert result.data == ["doc-for-warfarin"]
        assert backend.calls == 2

    @pytest.mark.asyncio
    async def test_persistent_timeouts_degrade_then_open_breaker(self, clock):
        backend = FlakySearch(hangs=100)
        policies = ResiliencePolicies(clock=clock)

        for _ in range(3):
            result = await policies.protect(
                KNOWLEDGE,
                lambda: with_timeout(backend.query("q"), 0.01),
                lambda: ["cached"],
            )
            assert result.data == ["cached"]
            assert isinstance(result.error, TimeoutExpired)

        assert policies.breaker(KNOWLEDGE).get_state() is CircuitState.OPEN
        assert policies.breaker(VALIDATION).get_state() is CircuitState.CLOSED

        clock.advance(15.0)
        backend.hangs = 0
        result = await policies.protect(KNOWLEDGE, lambda: backend.query("q"), lambda: [])

        assert result.degraded is False
        assert policies.breaker(KNOWLEDGE).get_state() is CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_rate_limited_callers(self, clock, recording_sleep):
        limiter = RateLimiter(max_tokens=2, refill_rate=1.0, clock=clock, sleep=recording_sleep)
        backend = FlakySearch(hangs=0)
        policies = ResiliencePolicies(clock=clock)

        async def limited_query(text):
            await limiter.wait_for_token()
            return await backend.query(text)

        results = []
        for text in ("a", "b", "c", "d"):
            result = await policies.protect(KNOWLEDGE, lambda t=text: limited_query(t), lambda: [])
            results.append(result.data)

        assert results == [["doc-for-a"], ["doc-for-b"], ["doc-for-c"], ["doc-for-d"]]
        assert recording_sleep.delays == [1.0, 1.0]
