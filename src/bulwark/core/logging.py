"""
Structured logging for bulwark.

Every component logs through structlog with event-style messages and
key/value fields, so breaker transitions and fallbacks can be correlated by
name in any JSON log aggregator.

Examples:
    From ``BULWARK_*`` settings (the usual path at service startup):

    >>> from bulwark.core.settings import ResilienceSettings
    >>> configure_logging_from_settings(ResilienceSettings())

    Explicit:

    >>> configure_logging(level="INFO", json_format=True, service="validation-api")
    >>> get_logger(__name__).warning("circuit_opened", breaker="insightrx-validation")

Guardrails:
    - Components accept an injected logger; this module only supplies the default
    - ``get_logger`` is lazy, so module-level loggers pick up later configuration
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from contextvars import Token
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from bulwark.core.settings import ResilienceSettings


def _service_metadata(service: str) -> Processor:
    """Processor stamping ``service.name`` onto every event."""

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", service)
        return event_dict

    return processor


def _ecs_field_names(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename timestamp/level to their ECS field names."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "bulwark",
    add_timestamp: bool = True,
) -> None:
    """Configure process-wide structlog output.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: True for JSON lines, False for console, None to pick JSON
            unless stdout is a terminal
        service: Value of the ``service.name`` field
        add_timestamp: Include an ISO timestamp
    """
    numeric_level = logging.getLevelNamesMapping().get(level.upper())
    if numeric_level is None:
        raise ValueError(f"Unknown log level: {level!r}")

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _service_metadata(service),
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            _ecs_field_names,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_settings(settings: ResilienceSettings) -> None:
    """Apply ``log_level``, ``log_json`` and ``service_name`` from settings."""
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        service=settings.service_name,
    )


def get_logger(name: str | None = None) -> Any:
    """Lazy structlog logger; nothing is bound until the first log call."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> Mapping[str, Token[Any]]:
    """Bind fields into every subsequent log line of the current context.

    Returns the tokens needed to restore the previous values.
    """
    return structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Scoped log fields, usable with ``with`` and ``async with``.

    On exit each key gets back the value it had on entry, so nested scopes
    that bind the same key do not wipe the outer binding.

    Example:
        async with LogContext(degradation="content-validation"):
            logger.info("primary_started")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._tokens: Mapping[str, Token[Any]] = {}

    def __enter__(self) -> LogContext:
        self._tokens = bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


__all__ = [
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
