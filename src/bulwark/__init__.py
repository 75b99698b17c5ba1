"""bulwark - fault-tolerant execution toolkit for calls to unreliable dependencies.

Example:
    >>> from bulwark import CircuitBreaker, RetryConfig, with_degradation
    >>>
    >>> breaker = CircuitBreaker("semantic-search")
    >>> result = await with_degradation(
    ...     lambda: search(query),
    ...     lambda: [],
    ...     circuit_breaker=breaker,
    ...     retry_config=RetryConfig(max_attempts=2, base_delay=0.1, max_delay=1.0),
    ...     name="semantic-search",
    ... )
"""

from bulwark.core.errors import (
    CircuitBreakerError,
    CircuitOpenError,
    ErrorKind,
    PermanentError,
    ResilienceError,
    RetryError,
    TimeoutExpired,
    TransientError,
    is_transient,
)
from bulwark.execution import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
    DegradationOrchestrator,
    DegradationResult,
    DegradationSource,
    RateLimiter,
    ResiliencePolicies,
    RetryConfig,
    timeout,
    with_degradation,
    with_retry,
    with_timeout,
)

__version__ = "0.1.0"

__all__ = [
    "CircuitBreakerError",
    "CircuitOpenError",
    "ErrorKind",
    "PermanentError",
    "ResilienceError",
    "RetryError",
    "TimeoutExpired",
    "TransientError",
    "is_transient",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    "DegradationOrchestrator",
    "DegradationResult",
    "DegradationSource",
    "RateLimiter",
    "ResiliencePolicies",
    "RetryConfig",
    "timeout",
    "with_degradation",
    "with_retry",
    "with_timeout",
]
