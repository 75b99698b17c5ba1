"""Tests for ResilienceSettings."""

import os

import pytest
from pydantic import ValidationError

from bulwark.core.settings import ResilienceSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove any BULWARK_* variables inherited from the shell."""
    for key in list(os.environ):
        if key.startswith("BULWARK_"):
            monkeypatch.delenv(key)


class TestResilienceSettings:
    """Test defaults and environment overrides."""

    def test_defaults(self):
        settings = ResilienceSettings(_env_file=None)
        assert settings.log_level == "INFO"
        assert settings.log_json is None
        assert settings.service_name == "bulwark"
        assert settings.breaker_failure_threshold == 5
        assert settings.breaker_reset_timeout == 30.0
        assert settings.breaker_half_open_timeout == 5.0
        assert settings.retry_max_attempts == 3
        assert settings.retry_base_delay == 0.2
        assert settings.retry_max_delay == 2.0
        assert settings.retry_jitter is True

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("BULWARK_BREAKER_RESET_TIMEOUT", "10")
        monkeypatch.setenv("BULWARK_LOG_JSON", "true")
        monkeypatch.setenv("BULWARK_SERVICE_NAME", "validation-api")

        settings = ResilienceSettings(_env_file=None)
        assert settings.breaker_reset_timeout == 10.0
        assert settings.log_json is True
        assert settings.service_name == "validation-api"

    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("BULWARK_LOG_LEVEL", "debug")
        assert ResilienceSettings(_env_file=None).log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            ResilienceSettings(_env_file=None, log_level="chatty")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("breaker_failure_threshold", 0),
            ("breaker_reset_timeout", -1),
            ("retry_max_attempts", 0),
            ("retry_base_delay", -0.5),
        ],
    )
    def test_out_of_range_rejected(self, field, value):
        with pytest.raises(ValidationError):
            ResilienceSettings(_env_file=None, **{field: value})

    def test_reads_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("BULWARK_RETRY_MAX_ATTEMPTS=6\nUNRELATED=1\n")

        settings = ResilienceSettings(_env_file=env_file)
        assert settings.retry_max_attempts == 6
