"""Preset policies for the dashboard's downstream dependencies.

Breakers are created fresh by factory functions and owned by a
``ResiliencePolicies`` instance that the service layer constructs once and
passes to its handlers. Nothing here is a module-level singleton, so each
test can build its own policies.

Example::

    policies = ResiliencePolicies.from_settings(ResilienceSettings(), configure_logs=True)

    result = await policies.protect(
        VALIDATION,
        lambda: validation_client.validate(content),
        lambda: NEEDS_REVIEW,
        retry_config=policies.validation_retry,
    )
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from bulwark.core.errors import is_transient
from bulwark.core.logging import configure_logging_from_settings
from bulwark.core.settings import ResilienceSettings
from bulwark.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from bulwark.execution.degradation import DegradationResult, Fallback, with_degradation
from bulwark.execution.retry import RetryConfig
from bulwark.observability.metrics import MetricsRegistry

T = TypeVar("T")

VALIDATION = "insightrx-validation"
KNOWLEDGE = "insightrx-knowledge"

VALIDATION_BREAKER_CONFIG = CircuitBreakerConfig(failure_threshold=5, reset_timeout=30.0)
KNOWLEDGE_BREAKER_CONFIG = CircuitBreakerConfig(failure_threshold=3, reset_timeout=15.0)


def validation_breaker(**kwargs: Any) -> CircuitBreaker:
    """Breaker for the content-validation service: 5 failures, 30 s cooldown."""
    return CircuitBreaker(VALIDATION, VALIDATION_BREAKER_CONFIG, **kwargs)


def knowledge_breaker(**kwargs: Any) -> CircuitBreaker:
    """Breaker for semantic knowledge search: 3 failures, 15 s cooldown."""
    return CircuitBreaker(KNOWLEDGE, KNOWLEDGE_BREAKER_CONFIG, **kwargs)


def validation_retry_config() -> RetryConfig:
    """Retry only transient failures; a rejected document is not retried."""
    return RetryConfig(
        max_attempts=3,
        base_delay=0.2,
        max_delay=2.0,
        jitter=True,
        is_retryable=is_transient,
    )


def knowledge_search_retry_config() -> RetryConfig:
    return RetryConfig(
        max_attempts=2,
        base_delay=0.1,
        max_delay=1.0,
        jitter=True,
    )


class ResiliencePolicies:
    """Composition root for breakers and retry policies.

    Args:
        registry: Breakers by name (a fresh registry when omitted)
        default_breaker_config: Config for breakers created on first use
        default_retry: Retry policy used by ``protect`` when none is given
        metrics: Registry shared by breakers and degradation points
    """

    def __init__(
        self,
        registry: CircuitBreakerRegistry | None = None,
        *,
        default_breaker_config: CircuitBreakerConfig | None = None,
        default_retry: RetryConfig | None = None,
        metrics: MetricsRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.metrics = metrics
        if registry is None:
            registry = CircuitBreakerRegistry(clock=clock, metrics=metrics)
        self.registry = registry
        if default_breaker_config is None:
            default_breaker_config = CircuitBreakerConfig()
        self.default_breaker_config = default_breaker_config
        self.default_retry = default_retry
        self.validation_retry = validation_retry_config()
        self.knowledge_retry = knowledge_search_retry_config()

        self.registry.get_or_create(VALIDATION, VALIDATION_BREAKER_CONFIG)
        self.registry.get_or_create(KNOWLEDGE, KNOWLEDGE_BREAKER_CONFIG)

    @classmethod
    def from_settings(
        cls,
        settings: ResilienceSettings,
        *,
        metrics: MetricsRegistry | None = None,
        configure_logs: bool = False,
    ) -> ResiliencePolicies:
        """Build policies whose defaults come from ``BULWARK_*`` settings.

        With ``configure_logs`` the process-wide structlog setup is also
        applied from ``log_level``, ``log_json`` and ``service_name``.
        """
        if configure_logs:
            configure_logging_from_settings(settings)
        return cls(
            default_breaker_config=CircuitBreakerConfig(
                failure_threshold=settings.breaker_failure_threshold,
                reset_timeout=settings.breaker_reset_timeout,
                half_open_timeout=settings.breaker_half_open_timeout,
            ),
            default_retry=RetryConfig(
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
                jitter=settings.retry_jitter,
                is_retryable=is_transient,
            ),
            metrics=metrics,
        )

    def breaker(self, name: str) -> CircuitBreaker:
        """Named breaker, created with the default config on first use."""
        return self.registry.get_or_create(name, self.default_breaker_config)

    async def protect(
        self,
        name: str,
        primary: Callable[[], Awaitable[T]],
        fallback: Fallback,
        *,
        retry_config: RetryConfig | None = None,
    ) -> DegradationResult[T]:
        """Run ``primary`` behind the named breaker with fallback."""
        return await with_degradation(
            primary,
            fallback,
            circuit_breaker=self.breaker(name),
            retry_config=retry_config if retry_config is not None else self.default_retry,
            name=name,
            metrics=self.metrics,
        )

    def health(self) -> dict[str, dict[str, Any]]:
        """Breaker stats keyed by name, for a status endpoint."""
        return self.registry.snapshot()
