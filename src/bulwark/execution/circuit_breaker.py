"""Circuit breaker pattern for fault tolerance.

Prevents cascading failures by failing fast when a downstream dependency
keeps failing, then probes cautiously for recovery.

States:
    CLOSED: Normal operation; consecutive failures are counted
    OPEN: Calls rejected with CircuitOpenError until reset_timeout elapses
    HALF_OPEN: Probing; success_threshold successes close the circuit,
        a single failure re-opens it

Example:
    >>> from bulwark.execution.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
    >>>
    >>> breaker = CircuitBreaker(
    ...     "insightrx-knowledge",
    ...     CircuitBreakerConfig(failure_threshold=3, reset_timeout=15.0),
    ... )
    >>> result = await breaker.execute(lambda: client.search(query))
"""

import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, TypeVar

from bulwark.core.errors import CircuitOpenError
from bulwark.core.logging import get_logger
from bulwark.observability.metrics import MetricsRegistry

T = TypeVar("T")

StateListener = Callable[["CircuitState", "CircuitState"], None]


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"         # Normal operation
    OPEN = "open"             # Rejecting requests
    HALF_OPEN = "half-open"   # Testing recovery


_STATE_GAUGE_VALUES = {
    CircuitState.CLOSED: 0.0,
    CircuitState.HALF_OPEN: 1.0,
    CircuitState.OPEN: 2.0,
}


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Immutable breaker configuration.

    Attributes:
        failure_threshold: Consecutive failures in CLOSED before opening
        reset_timeout: Seconds after the last failure before OPEN may probe
        half_open_timeout: Informational half-open window in seconds; it never
            forces a transition on its own
        success_threshold: Successful probes needed in HALF_OPEN to close
    """

    failure_threshold: int = 5
    reset_timeout: float = 30.0
    half_open_timeout: float = 5.0
    success_threshold: int = 3

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {self.failure_threshold}")
        if self.success_threshold < 1:
            raise ValueError(f"success_threshold must be >= 1, got {self.success_threshold}")
        if self.reset_timeout < 0:
            raise ValueError(f"reset_timeout must be non-negative, got {self.reset_timeout}")
        if self.half_open_timeout < 0:
            raise ValueError(
                f"half_open_timeout must be non-negative, got {self.half_open_timeout}"
            )


@dataclass(frozen=True)
class CircuitStats:
    """Point-in-time snapshot of a breaker's bookkeeping."""

    name: str
    state: CircuitState
    failure_count: int
    success_count: int
    last_failure_time: float | None
    rejected_count: int
    state_changes: int

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


class CircuitBreaker:
    """Per-dependency failure/success state machine.

    Bookkeeping is guarded by a per-instance lock that is never held across
    an ``await``; calls to the protected operation itself are not serialized.

    Args:
        name: Identifier used in logs, errors and metric labels
        config: Thresholds and timeouts (defaults to CircuitBreakerConfig())
        clock: Monotonic time source in seconds
        logger: Structured logger (defaults to the module logger)
        metrics: Optional registry receiving state/transition/rejection metrics
    """

    def __init__(
        self,
        name: str = "unnamed",
        config: CircuitBreakerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: Any = None,
        metrics: MetricsRegistry | None = None,
    ):
        self.name = name
        self.config = config if config is not None else CircuitBreakerConfig()
        self._clock = clock
        self._logger = logger if logger is not None else get_logger(__name__)
        self._metrics = metrics

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._rejected_count = 0
        self._state_changes = 0
        self._listeners: list[StateListener] = []
        self._lock = threading.Lock()

        self._set_state_gauge(CircuitState.CLOSED)

    # ── Public API ───────────────────────────────────────────────

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open and not yet due a probe
            Exception: The operation's own failure, after it was recorded
        """
        self._admit()

        try:
            result = await operation()
        except Exception as e:
            self._on_failure(e)
            raise

        self._on_success()
        return result

    def get_state(self) -> CircuitState:
        """Current state (no time-based transition is applied on read)."""
        with self._lock:
            return self._state

    @property
    def state(self) -> CircuitState:
        return self.get_state()

    def get_stats(self) -> CircuitStats:
        """Snapshot of the breaker's counters."""
        with self._lock:
            return CircuitStats(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                last_failure_time=self._last_failure_time,
                rejected_count=self._rejected_count,
                state_changes=self._state_changes,
            )

    def reset(self) -> None:
        """Force the circuit closed and zero all counters."""
        with self._lock:
            old_state = self._state
            if old_state is not CircuitState.CLOSED:
                self._transition_to(CircuitState.CLOSED)
            self._failure_count = 0
            self._success_count = 0
            self._last_failure_time = None
            self._rejected_count = 0

        self._logger.info("circuit_reset", breaker=self.name, previous_state=old_state.value)
        if old_state is not CircuitState.CLOSED:
            self._emit_transition(old_state, CircuitState.CLOSED)

    def add_state_listener(self, listener: StateListener) -> None:
        """Register ``listener(old_state, new_state)`` for every transition."""
        self._listeners.append(listener)

    # ── State machine ────────────────────────────────────────────

    def _admit(self) -> None:
        """Reject the call, or let it through (moving OPEN -> HALF_OPEN when due)."""
        transition = None
        rejected_in: CircuitState | None = None
        with self._lock:
            if self._state is CircuitState.OPEN:
                elapsed = self._clock() - (self._last_failure_time or 0.0)
                if elapsed >= self.config.reset_timeout:
                    transition = self._transition_to(CircuitState.HALF_OPEN)
                    self._success_count = 0
                else:
                    self._rejected_count += 1
                    rejected_in = self._state

        if rejected_in is not None:
            self._record_rejection()
            raise CircuitOpenError(self.name, rejected_in)

        if transition is not None:
            self._logger.info("circuit_half_open", breaker=self.name)
            self._emit_transition(*transition)

    def _on_success(self) -> None:
        transition = None
        with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.config.success_threshold:
                    transition = self._transition_to(CircuitState.CLOSED)
                    self._failure_count = 0
            elif self._state is CircuitState.CLOSED:
                self._failure_count = 0

        if transition is not None:
            self._logger.info("circuit_closed", breaker=self.name)
            self._emit_transition(*transition)

    def _on_failure(self, error: Exception) -> None:
        transition = None
        reason = None
        with self._lock:
            self._last_failure_time = self._clock()

            if self._state is CircuitState.HALF_OPEN:
                transition = self._transition_to(CircuitState.OPEN)
                reason = "half_open_failure"
            elif self._state is CircuitState.CLOSED:
                self._failure_count += 1
                if self._failure_count >= self.config.failure_threshold:
                    transition = self._transition_to(CircuitState.OPEN)
                    reason = "threshold_reached"
            failures = self._failure_count

        self._logger.debug(
            "circuit_failure_recorded",
            breaker=self.name,
            failures=failures,
            error=repr(error),
        )
        if transition is not None:
            self._logger.warning(
                "circuit_opened",
                breaker=self.name,
                reason=reason,
                failures=failures,
                threshold=self.config.failure_threshold,
            )
            self._emit_transition(*transition)

    def _transition_to(self, new_state: CircuitState) -> tuple[CircuitState, CircuitState]:
        """Switch state. Caller holds the lock."""
        old_state = self._state
        self._state = new_state
        self._state_changes += 1
        return old_state, new_state

    # ── Notification ─────────────────────────────────────────────

    def _emit_transition(self, old_state: CircuitState, new_state: CircuitState) -> None:
        self._set_state_gauge(new_state)
        if self._metrics is not None:
            self._metrics.counter(
                "circuit_breaker_transitions_total",
                "Circuit breaker state transitions",
            ).labels(breaker=self.name, to_state=new_state.value).inc()

        for listener in list(self._listeners):
            try:
                listener(old_state, new_state)
            except Exception:
                self._logger.error(
                    "circuit_listener_failed",
                    breaker=self.name,
                    to_state=new_state.value,
                    exc_info=True,
                )

    def _record_rejection(self) -> None:
        self._logger.debug("circuit_rejected", breaker=self.name)
        if self._metrics is not None:
            self._metrics.counter(
                "circuit_breaker_rejections_total",
                "Calls rejected by an open circuit",
            ).labels(breaker=self.name).inc()

    def _set_state_gauge(self, state: CircuitState) -> None:
        if self._metrics is not None:
            self._metrics.gauge(
                "circuit_breaker_state",
                "0=closed, 1=half-open, 2=open",
            ).labels(breaker=self.name).set(_STATE_GAUGE_VALUES[state])

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self.name!r}, state={self.get_state().value})"


class CircuitBreakerRegistry:
    """Explicitly owned map of named circuit breakers.

    Constructed by whichever component composes the service layer and
    passed to callers; there is no process-wide default instance.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: Any = None,
        metrics: MetricsRegistry | None = None,
    ):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._clock = clock
        self._logger = logger
        self._metrics = metrics
        self._lock = threading.RLock()

    def get(self, name: str) -> CircuitBreaker | None:
        """Get a circuit breaker by name, returns None if not found."""
        with self._lock:
            return self._breakers.get(name)

    def get_or_create(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create a circuit breaker by name.

        ``config`` only applies when the breaker is created.
        """
        with self._lock:
            if name not in self._breakers:
                self._breakers[name] = CircuitBreaker(
                    name,
                    config,
                    clock=self._clock,
                    logger=self._logger,
                    metrics=self._metrics,
                )
            return self._breakers[name]

    def register(self, breaker: CircuitBreaker) -> CircuitBreaker:
        """Add an existing breaker under its own name."""
        with self._lock:
            if breaker.name in self._breakers and self._breakers[breaker.name] is not breaker:
                raise ValueError(f"Circuit breaker {breaker.name!r} already registered")
            self._breakers[breaker.name] = breaker
            return breaker

    def list_all(self) -> list[str]:
        """List all registered circuit breaker names."""
        with self._lock:
            return list(self._breakers.keys())

    def remove(self, name: str) -> None:
        with self._lock:
            self._breakers.pop(name, None)

    def clear(self) -> None:
        with self._lock:
            self._breakers.clear()

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Stats for every breaker, keyed by name."""
        with self._lock:
            breakers = list(self._breakers.items())
        return {name: breaker.get_stats().to_dict() for name, breaker in breakers}

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._breakers

    def __len__(self) -> int:
        with self._lock:
            return len(self._breakers)
