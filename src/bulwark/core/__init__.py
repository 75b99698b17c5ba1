"""Core building blocks shared by every bulwark component: errors, logging, settings."""

from bulwark.core.errors import (
    CircuitBreakerError,
    CircuitOpenError,
    ErrorKind,
    PermanentError,
    ResilienceError,
    RetryError,
    TimeoutExpired,
    TransientError,
    classify,
    is_transient,
)
from bulwark.core.logging import (
    LogContext,
    configure_logging,
    configure_logging_from_settings,
    get_logger,
)

__all__ = [
    "CircuitBreakerError",
    "CircuitOpenError",
    "ErrorKind",
    "PermanentError",
    "ResilienceError",
    "RetryError",
    "TimeoutExpired",
    "TransientError",
    "classify",
    "is_transient",
    "LogContext",
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
]
