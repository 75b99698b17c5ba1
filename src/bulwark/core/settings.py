"""Environment-driven settings for bulwark.

``ResilienceSettings`` holds the logging options and the default breaker and
retry parameters used by the composition root in
:mod:`bulwark.execution.presets`.

Examples:
    >>> from bulwark.core.settings import ResilienceSettings
    >>> settings = ResilienceSettings()          # reads BULWARK_* and .env
    >>> settings.breaker_failure_threshold
    5

    Overriding from the environment::

        BULWARK_BREAKER_RESET_TIMEOUT=10 BULWARK_LOG_LEVEL=DEBUG python app.py
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResilienceSettings(BaseSettings):
    """Settings for the resilience layer.

    Fields
    ──────
    log_level                 : Structlog log level
    log_json                  : JSON output (None = auto-detect from tty)
    service_name              : ``service.name`` field on every log line
    breaker_failure_threshold : Consecutive failures before a breaker opens
    breaker_reset_timeout     : Seconds an open breaker waits before probing
    breaker_half_open_timeout : Informational half-open window, seconds
    retry_max_attempts        : Default attempt budget
    retry_base_delay          : First backoff delay, seconds
    retry_max_delay           : Backoff cap, seconds
    retry_jitter              : Scale delays by a random factor in [1.0, 1.5)
    """

    model_config = SettingsConfigDict(
        env_prefix="BULWARK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
    service_name: str = "bulwark"

    # ── Circuit breaker defaults ─────────────────────────────────
    breaker_failure_threshold: int = Field(default=5, ge=1)
    breaker_reset_timeout: float = Field(default=30.0, ge=0)
    breaker_half_open_timeout: float = Field(default=5.0, ge=0)

    # ── Retry defaults ───────────────────────────────────────────
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.2, ge=0)
    retry_max_delay: float = Field(default=2.0, ge=0)
    retry_jitter: bool = True

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value!r}")
        return level
