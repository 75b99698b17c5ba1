"""Graceful degradation: primary call with retry and circuit breaking, then fallback.

The orchestrator composes the other primitives around a primary operation
and substitutes a fallback of the same data type when the primary fails for
any reason. It raises to the caller only when the fallback fails too.

Architecture:
    ::

        caller
          │
          ▼
        DegradationOrchestrator.run(primary, fallback)
          │
          ├── CircuitBreaker.execute          (optional, outermost)
          │     └── with_retry                (optional)
          │           └── primary()
          │
          ├── ok     ─► DegradationResult(data, degraded=False, source=PRIMARY)
          └── failed ─► fallback()
                          ├── ok     ─► DegradationResult(data, degraded=True,
                          │                               source=FALLBACK, error=primary_error)
                          └── failed ─► fallback's exception re-raised, primary
                                        error kept as __context__ and a note

    The breaker wraps retry, so one full retry sequence counts as a single
    logical call for the breaker.

Example:
    >>> result = await with_degradation(
    ...     lambda: validation_client.validate(content),
    ...     lambda: ValidationResult.needs_review(),
    ...     circuit_breaker=policies.breaker(VALIDATION),
    ...     retry_config=policies.validation_retry,
    ...     name="content-validation",
    ... )
    >>> if result.degraded:
    ...     flag_for_manual_review(result.error)
"""

import functools
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from bulwark.core.logging import LogContext, get_logger
from bulwark.execution.circuit_breaker import CircuitBreaker
from bulwark.execution.retry import RetryConfig, with_retry
from bulwark.observability.metrics import MetricsRegistry

T = TypeVar("T")

Fallback = Callable[[], Awaitable[T] | T]


class DegradationSource(str, Enum):
    """Which path produced a DegradationResult."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DegradationResult(Generic[T]):
    """Tagged outcome of a degradation-protected call.

    Attributes:
        data: Value from whichever path succeeded
        degraded: True when the fallback supplied ``data``
        source: PRIMARY or FALLBACK
        error: The primary's failure, only set when degraded
    """

    data: T
    degraded: bool
    source: DegradationSource
    error: BaseException | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "degraded": self.degraded,
            "source": self.source.value,
        }
        if self.error is not None:
            result["error"] = repr(self.error)
        return result


class DegradationOrchestrator:
    """Reusable primary/fallback policy for one degradation point.

    Args:
        name: Identifier for logs and metric labels
        circuit_breaker: Breaker guarding the primary (outermost wrapper)
        retry_config: Retry policy applied to the primary inside the breaker
        log_degradation: Log a warning each time the fallback is used
        logger: Structured logger (defaults to the module logger)
        metrics: Optional registry counting fallbacks and double failures
    """

    def __init__(
        self,
        name: str = "unnamed",
        *,
        circuit_breaker: CircuitBreaker | None = None,
        retry_config: RetryConfig | None = None,
        log_degradation: bool = True,
        logger: Any = None,
        metrics: MetricsRegistry | None = None,
    ):
        self.name = name
        self.circuit_breaker = circuit_breaker
        self.retry_config = retry_config
        self.log_degradation = log_degradation
        self._logger = logger if logger is not None else get_logger(__name__)
        self._metrics = metrics

    def build_chain(self, primary: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[T]]:
        """Compose primary -> retry -> breaker."""
        executor: Callable[[], Awaitable[T]] = primary

        if self.retry_config is not None:
            executor = functools.partial(with_retry, executor, self.retry_config)

        if self.circuit_breaker is not None:
            executor = functools.partial(self.circuit_breaker.execute, executor)

        return executor

    async def run(
        self,
        primary: Callable[[], Awaitable[T]],
        fallback: Fallback,
    ) -> DegradationResult[T]:
        """Execute the chain, falling back on any primary failure."""
        chain = self.build_chain(primary)

        async with LogContext(degradation=self.name):
            try:
                data = await chain()
            except Exception as primary_error:
                return await self._use_fallback(fallback, primary_error)

        return DegradationResult(data=data, degraded=False, source=DegradationSource.PRIMARY)

    async def _use_fallback(
        self,
        fallback: Fallback,
        primary_error: Exception,
    ) -> DegradationResult[Any]:
        if self.log_degradation:
            self._logger.warning(
                "degradation_fallback",
                name=self.name,
                error=repr(primary_error),
            )
        self._count("degradation_fallbacks_total", "Calls served by the fallback")

        try:
            data = fallback()
            if inspect.isawaitable(data):
                data = await data
        except Exception as fallback_error:
            self._logger.error(
                "degradation_failed",
                name=self.name,
                primary_error=repr(primary_error),
                fallback_error=repr(fallback_error),
            )
            self._count("degradation_failures_total", "Primary and fallback both failed")
            fallback_error.add_note(
                f"primary failure in degradation {self.name!r}: {primary_error!r}"
            )
            raise

        return DegradationResult(
            data=data,
            degraded=True,
            source=DegradationSource.FALLBACK,
            error=primary_error,
        )

    def _count(self, metric: str, description: str) -> None:
        if self._metrics is not None:
            self._metrics.counter(metric, description).labels(name=self.name).inc()


async def with_degradation(
    primary: Callable[[], Awaitable[T]],
    fallback: Fallback,
    *,
    circuit_breaker: CircuitBreaker | None = None,
    retry_config: RetryConfig | None = None,
    name: str = "unnamed",
    log_degradation: bool = True,
    logger: Any = None,
    metrics: MetricsRegistry | None = None,
) -> DegradationResult[T]:
    """One-shot form of :class:`DegradationOrchestrator`.

    Returns:
        DegradationResult tagged with the path that produced the data

    Raises:
        Exception: The fallback's error, only when primary and fallback both fail
    """
    orchestrator = DegradationOrchestrator(
        name,
        circuit_breaker=circuit_breaker,
        retry_config=retry_config,
        log_degradation=log_degradation,
        logger=logger,
        metrics=metrics,
    )
    return await orchestrator.run(primary, fallback)
