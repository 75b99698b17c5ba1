"""
Structured error types for the bulwark resilience toolkit.

Every failure the toolkit raises itself is a ``ResilienceError`` carrying a
kind, a retryable flag and an optional chained cause. Callers classify their
own failures with ``TransientError`` / ``PermanentError`` (or any exception
exposing a ``retryable`` attribute) instead of matching on message text.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                    ResilienceError                           │
        │           (kind, retryable, cause, to_dict)                  │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  TransientError     PermanentError     CircuitOpenError      │
        │  (retryable=True)   (retryable=False)  (BREAKER_OPEN)        │
        │                                                              │
        │  RetryError         TimeoutExpired                           │
        │  (RETRY_EXHAUSTED)  (TIMEOUT, builtin TimeoutError)          │
        └─────────────────────────────────────────────────────────────┘

Examples:
    Caller-side classification:

    >>> try:
    ...     raise ConnectionResetError("peer reset")
    ... except ConnectionResetError as e:
    ...     error = TransientError("search backend unreachable", cause=e)
    >>> is_transient(error)
    True

    Kinds for routing:

    >>> classify(PermanentError("bad request"))
    <ErrorKind.NON_RETRYABLE: 'NON_RETRYABLE'>

Guardrails:
    ❌ DON'T: Decide retryability by searching ``str(error)`` for "timeout"
    ✅ DO: Raise ``TransientError`` or set ``retryable`` where the failure happens

Tags:
    error-handling, exception-hierarchy, retry-logic, bulwark
"""

from __future__ import annotations

import builtins
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification of failures produced or observed by the toolkit."""

    BREAKER_OPEN = "BREAKER_OPEN"        # Call rejected without being attempted
    TRANSIENT = "TRANSIENT"              # Worth retrying
    NON_RETRYABLE = "NON_RETRYABLE"      # Retrying will not help
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"  # Attempt budget used up
    TIMEOUT = "TIMEOUT"                  # Deadline elapsed
    DEGRADATION = "DEGRADATION"          # Primary and fallback both failed
    CONFIG = "CONFIG"                    # Invalid configuration
    UNKNOWN = "UNKNOWN"


class ResilienceError(Exception):
    """
    Base exception for all bulwark errors.

    Subclasses set ``default_kind`` and ``default_retryable``; both can be
    overridden per instance.

    Attributes:
        message: Human-readable description
        kind: ErrorKind used for routing and metrics labels
        retryable: Whether repeating the failed operation may succeed
        cause: Underlying exception, also set as ``__cause__``
    """

    default_kind: ErrorKind = ErrorKind.UNKNOWN
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        retryable: bool | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "kind": self.kind.value,
            "retryable": self.retryable,
        }
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind.value})"


class TransientError(ResilienceError):
    """Temporary failure that may succeed on retry (network blip, 5xx, 429)."""

    default_kind = ErrorKind.TRANSIENT
    default_retryable = True


class PermanentError(ResilienceError):
    """Failure that will repeat on every attempt (validation, 4xx, auth)."""

    default_kind = ErrorKind.NON_RETRYABLE
    default_retryable = False


class CircuitOpenError(ResilienceError):
    """Raised when a circuit breaker rejects a call without attempting it.

    Attributes:
        breaker_name: Name of the rejecting breaker
        state: Breaker state at rejection time
    """

    default_kind = ErrorKind.BREAKER_OPEN
    default_retryable = False

    def __init__(self, breaker_name: str, state: Any, message: str | None = None):
        super().__init__(message or f"Circuit breaker is open for {breaker_name}")
        self.breaker_name = breaker_name
        self.state = state

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["breaker"] = self.breaker_name
        result["state"] = getattr(self.state, "value", self.state)
        return result


# Name used by callers coming from the breaker's own vocabulary
CircuitBreakerError = CircuitOpenError


class RetryError(ResilienceError):
    """Raised when every allowed attempt failed.

    Attributes:
        attempts: Number of attempts made
        last_error: Exception raised by the final attempt
    """

    default_kind = ErrorKind.RETRY_EXHAUSTED
    default_retryable = False

    def __init__(self, attempts: int, last_error: BaseException, message: str | None = None):
        super().__init__(
            message or f"Failed after {attempts} attempts",
            cause=last_error,
        )
        self.attempts = attempts
        self.last_error = last_error

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["attempts"] = self.attempts
        return result


class TimeoutExpired(ResilienceError, builtins.TimeoutError):
    """Raised when an operation does not settle before its deadline.

    Inherits from built-in TimeoutError for broad exception handling.

    Attributes:
        timeout: The timeout value (seconds) that was exceeded
        elapsed: How long the caller waited before giving up
    """

    default_kind = ErrorKind.TIMEOUT
    default_retryable = True

    def __init__(
        self,
        message: str = "Operation timed out",
        *,
        timeout: float | None = None,
        elapsed: float | None = None,
    ):
        super().__init__(message)
        self.timeout = timeout
        self.elapsed = elapsed

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.timeout is not None:
            result["timeout"] = self.timeout
        if self.elapsed is not None:
            result["elapsed"] = round(self.elapsed, 4)
        return result


def is_transient(error: BaseException) -> bool:
    """Structured retry predicate.

    Uses the ``retryable`` flag when the error carries one; otherwise only
    connection failures and builtin timeouts count as transient.
    """
    retryable = getattr(error, "retryable", None)
    if isinstance(retryable, bool):
        return retryable
    return isinstance(error, (ConnectionError, builtins.TimeoutError))


def classify(error: BaseException) -> ErrorKind:
    """Get the ErrorKind of any exception."""
    if isinstance(error, ResilienceError):
        return error.kind
    if isinstance(error, builtins.TimeoutError):
        return ErrorKind.TIMEOUT
    if is_transient(error):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNKNOWN


__all__ = [
    "ErrorKind",
    "ResilienceError",
    "TransientError",
    "PermanentError",
    "CircuitOpenError",
    "CircuitBreakerError",
    "RetryError",
    "TimeoutExpired",
    "is_transient",
    "classify",
]
