"""Token-bucket rate limiting for outbound call volume.

Tokens accrue continuously at ``refill_rate`` per second up to
``max_tokens``; each admitted action consumes one. The bucket starts full,
so up to ``max_tokens`` actions can burst before the steady rate applies.

Refill accounting happens on every read (``can_proceed``, ``consume``,
``get_available_tokens``), not only on consumption.

Example::

    limiter = RateLimiter(max_tokens=5, refill_rate=1.0)
    if limiter.consume():
        await call_search_api()

    await limiter.wait_for_token()   # suspends until a token is available
    await call_search_api()

Related modules:
    circuit_breaker.py - fail fast on sustained failures
    retry.py           - backoff on transient failures
"""

import asyncio
import math
import threading
import time
from collections.abc import Awaitable, Callable


class RateLimiter:
    """Continuous-refill token bucket.

    Attributes:
        max_tokens: Bucket capacity (burst size)
        refill_rate: Tokens added per second
    """

    def __init__(
        self,
        max_tokens: float,
        refill_rate: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {max_tokens}")
        if refill_rate <= 0:
            raise ValueError(f"refill_rate must be positive, got {refill_rate}")

        self.max_tokens = float(max_tokens)
        self.refill_rate = float(refill_rate)
        self._clock = clock
        self._sleep = sleep
        self._tokens = self.max_tokens
        self._last_refill = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        """Add tokens based on elapsed time. Caller holds the lock."""
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.max_tokens, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def can_proceed(self) -> bool:
        """Report whether a token is available, without consuming it."""
        with self._lock:
            self._refill()
            return self._tokens >= 1

    def consume(self) -> bool:
        """Take one token if available.

        Returns:
            True if a token was consumed, False if the bucket is empty
            (balance unchanged)
        """
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    async def wait_for_token(self) -> None:
        """Suspend until a token has been consumed.

        Polls once per token-accrual interval (``1 / refill_rate`` seconds).
        """
        interval = self.poll_interval
        while not self.consume():
            await self._sleep(interval)

    def get_available_tokens(self) -> int:
        """Whole tokens currently available."""
        with self._lock:
            self._refill()
            return math.floor(self._tokens)

    @property
    def poll_interval(self) -> float:
        """Seconds between ``wait_for_token`` attempts."""
        return 1.0 / self.refill_rate

    def __repr__(self) -> str:
        return (
            f"RateLimiter(max_tokens={self.max_tokens}, "
            f"refill_rate={self.refill_rate})"
        )
