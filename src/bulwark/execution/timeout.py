"""Timeout guard for asynchronous operations.

Races a single awaitable against a deadline. When the deadline wins, the
caller stops waiting and gets ``TimeoutExpired``; the underlying work is not
cancelled and keeps running to completion in the background.

Manifesto:
    Calls to downstream services without a deadline hang their callers.
    The guard bounds only the *wait*, so work that must not be interrupted
    halfway (a write, a billing call) is never torn down by the guard.

Architecture:
    ::

        with_timeout(awaitable, 5.0)
            │
            ├── ensure_future(awaitable) ──► task (keeps running)
            │
            └── wait_for(shield(task), 5.0)
                  ├── settles first ─► result / task's exception
                  └── deadline first ─► TimeoutExpired(message)
                                         task outcome discarded on completion

Examples:
    >>> result = await with_timeout(search_client.query(text), 2.0)

    >>> @timeout(10.0, message="knowledge search timed out")
    ... async def search(text):
    ...     return await client.query(text)

Guardrails:
    - There is no overall deadline across retry attempts; wrap the primary
      operation itself when each attempt needs a bound
    - The timer belongs to ``asyncio.wait_for`` and is cleared on every exit

Tags:
    timeout, deadline, resilience, execution, bulwark
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

from bulwark.core.errors import TimeoutExpired

T = TypeVar("T")
P = ParamSpec("P")

DEFAULT_TIMEOUT_MESSAGE = "Operation timed out"


def _discard_outcome(task: asyncio.Future[Any]) -> None:
    """Retrieve an abandoned task's outcome so asyncio does not warn about it."""
    if not task.cancelled():
        task.exception()


async def with_timeout(
    operation: Awaitable[T],
    timeout_seconds: float,
    message: str = DEFAULT_TIMEOUT_MESSAGE,
) -> T:
    """Wait for ``operation`` for at most ``timeout_seconds``.

    Args:
        operation: Coroutine, task or future to wait for
        timeout_seconds: Deadline in seconds (0 means "already settled or fail")
        message: Message carried by the timeout error

    Returns:
        The operation's result

    Raises:
        TimeoutExpired: If the deadline elapses first
        ValueError: If timeout_seconds is negative
        Exception: Whatever the operation raises, unchanged
    """
    if timeout_seconds < 0:
        raise ValueError(f"Timeout must be non-negative, got {timeout_seconds}")

    task = asyncio.ensure_future(operation)
    start = time.monotonic()

    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout_seconds)
    except TimeoutError:
        # The operation settled anyway (it may have raised a TimeoutError itself)
        if task.done() and not task.cancelled():
            return task.result()
        task.add_done_callback(_discard_outcome)
        raise TimeoutExpired(
            message,
            timeout=timeout_seconds,
            elapsed=time.monotonic() - start,
        ) from None
    except BaseException:
        # Caller cancelled: the task is abandoned just as on a timeout
        if not task.done():
            task.add_done_callback(_discard_outcome)
        raise


def timeout(
    seconds: float,
    message: str | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator to enforce a timeout on a coroutine function.

    Args:
        seconds: Maximum time to wait for each call
        message: Timeout message (defaults to "<function> timed out")
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"@timeout requires a coroutine function, got {func!r}")

        timeout_message = message or f"{func.__name__} timed out"

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await with_timeout(func(*args, **kwargs), seconds, timeout_message)

        return wrapper

    return decorator
