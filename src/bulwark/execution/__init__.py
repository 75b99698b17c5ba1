"""Bulwark execution layer: fault-tolerant wrappers for unreliable async calls.

ARCHITECTURE
────────────
::

    caller
      │
      ▼
    with_degradation / DegradationOrchestrator   ─ primary + fallback
      ├── CircuitBreaker   ─ fail fast on a known-bad dependency
      │     └── with_retry ─ jittered exponential backoff
      │           └── primary operation
      └── fallback

    RateLimiter   ─ token bucket, checked before admission
    with_timeout  ─ bound the wait for a single operation

MODULE MAP
──────────
  1. timeout.py          ─ with_timeout, @timeout
  2. rate_limit.py       ─ RateLimiter (token bucket)
  3. circuit_breaker.py  ─ CircuitBreaker, CircuitBreakerRegistry
  4. retry.py            ─ RetryConfig, with_retry, retry_wrapper, @retrying
  5. degradation.py      ─ DegradationOrchestrator, with_degradation
  6. presets.py          ─ preset breakers/retry configs, ResiliencePolicies
"""

from bulwark.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
    CircuitStats,
)
from bulwark.execution.degradation import (
    DegradationOrchestrator,
    DegradationResult,
    DegradationSource,
    with_degradation,
)
from bulwark.execution.presets import (
    ResiliencePolicies,
    knowledge_breaker,
    knowledge_search_retry_config,
    validation_breaker,
    validation_retry_config,
)
from bulwark.execution.rate_limit import RateLimiter
from bulwark.execution.retry import RetryConfig, retry_wrapper, retrying, with_retry
from bulwark.execution.timeout import timeout, with_timeout

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    "CircuitStats",
    # Degradation
    "DegradationOrchestrator",
    "DegradationResult",
    "DegradationSource",
    "with_degradation",
    # Presets
    "ResiliencePolicies",
    "knowledge_breaker",
    "knowledge_search_retry_config",
    "validation_breaker",
    "validation_retry_config",
    # Rate limiting
    "RateLimiter",
    # Retry
    "RetryConfig",
    "retry_wrapper",
    "retrying",
    "with_retry",
    # Timeout
    "timeout",
    "with_timeout",
]
