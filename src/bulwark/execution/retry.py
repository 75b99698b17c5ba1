"""Retry with bounded, jittered exponential backoff.

Absorbs transient failures of idempotent (or safely repeatable) async
operations. Attempts within one call are strictly sequential.

Delay before retry n (1-based attempt that just failed)::

    delay = min(base_delay * exponential_base ** (n - 1), max_delay)
    delay *= 1 + U[0, 0.5)            # when jitter is enabled

Outcomes:
    - success on any attempt      -> value returned
    - is_retryable(error) is False -> original error re-raised immediately
    - all max_attempts failed      -> RetryError(attempts, last_error)

Example:
    >>> from bulwark.execution.retry import RetryConfig, with_retry
    >>>
    >>> config = RetryConfig(max_attempts=3, base_delay=0.1, max_delay=1.0)
    >>> result = await with_retry(lambda: client.search(query), config)
"""

import asyncio
import functools
import inspect
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from bulwark.core.errors import RetryError
from bulwark.core.logging import get_logger

T = TypeVar("T")

RetryObserver = Callable[[int, Exception, float], None]

logger = get_logger(__name__)


def _always_retryable(error: Exception) -> bool:
    return True


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for a single logical call.

    Attributes:
        max_attempts: Total attempts including the first (>= 1)
        base_delay: Delay after the first failure, seconds
        max_delay: Cap on any single delay before jitter, seconds
        exponential_base: Multiplier applied per attempt
        jitter: Scale each delay by a random factor in [1.0, 1.5)
        is_retryable: Predicate deciding whether an error is worth retrying
        on_retry: Observer called as (attempt, error, delay) before each wait
    """

    max_attempts: int = 3
    base_delay: float = 0.2
    max_delay: float = 2.0
    exponential_base: float = 2.0
    jitter: bool = True
    is_retryable: Callable[[Exception], bool] = _always_retryable
    on_retry: RetryObserver | None = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")
        if self.exponential_base < 1:
            raise ValueError(f"exponential_base must be >= 1, got {self.exponential_base}")

    def compute_delay(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Delay in seconds after ``attempt`` (1-based) failed."""
        delay = min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= 1 + rng() * 0.5
        return delay


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument callable returning an awaitable
        config: Retry policy
        sleep: Suspension used between attempts
        rng: Uniform [0, 1) source for jitter

    Raises:
        RetryError: All attempts failed (chained from the last error)
        Exception: The original error when ``config.is_retryable`` rejects it
    """
    for attempt in range(1, config.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not config.is_retryable(e):
                logger.debug("retry_not_retryable", attempt=attempt, error=repr(e))
                raise

            if attempt == config.max_attempts:
                logger.warning(
                    "retry_exhausted",
                    attempts=attempt,
                    error=repr(e),
                )
                raise RetryError(attempt, e) from e

            delay = config.compute_delay(attempt, rng)
            if config.on_retry is not None:
                config.on_retry(attempt, e, delay)

            logger.info(
                "retry_scheduled",
                attempt=attempt,
                max_attempts=config.max_attempts,
                delay=round(delay, 4),
                error=repr(e),
            )
            await sleep(delay)

    raise AssertionError("unreachable: max_attempts >= 1")


def retry_wrapper(config: RetryConfig) -> Callable[[Callable[[], Awaitable[T]]], Awaitable[T]]:
    """Preset a policy: returns ``wrap(operation) -> awaitable``.

    Example:
        >>> search_retry = retry_wrapper(RetryConfig(max_attempts=2, base_delay=0.1))
        >>> result = await search_retry(lambda: client.search(query))
    """

    def wrap(operation: Callable[[], Awaitable[T]]) -> Awaitable[T]:
        return with_retry(operation, config)

    return wrap


def retrying(config: RetryConfig) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator applying a retry policy to every call of a coroutine function.

    Example:
        >>> @retrying(RetryConfig(max_attempts=3, base_delay=0.2))
        ... async def fetch_rules(version):
        ...     return await rules_api.get(version)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"@retrying requires a coroutine function, got {func!r}")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_retry(lambda: func(*args, **kwargs), config)

        return wrapper

    return decorator
