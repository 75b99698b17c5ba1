"""Tests for preset breakers, retry policies and the ResiliencePolicies root."""

import pytest

from bulwark.core.errors import PermanentError, TransientError
from bulwark.core.settings import ResilienceSettings
from bulwark.execution.circuit_breaker import CircuitBreakerConfig, CircuitBreakerRegistry, CircuitState
from bulwark.execution.presets import (
    KNOWLEDGE,
    VALIDATION,
    ResiliencePolicies,
    knowledge_breaker,
    knowledge_search_retry_config,
    validation_breaker,
    validation_retry_config,
)
from bulwark.execution.retry import RetryConfig


class TestPresetFactories:
    """Tests for the named preset factories."""

    def test_validation_breaker(self):
        breaker = validation_breaker()
        assert breaker.name == VALIDATION == "insightrx-validation"
        assert breaker.config.failure_threshold == 5
        assert breaker.config.reset_timeout == 30.0

    def test_knowledge_breaker(self):
        breaker = knowledge_breaker()
        assert breaker.name == KNOWLEDGE == "insightrx-knowledge"
        assert breaker.config.failure_threshold == 3
        assert breaker.config.reset_timeout == 15.0

    def test_factories_return_independent_instances(self, clock):
        first = validation_breaker(clock=clock)
        second = validation_breaker(clock=clock)
        assert first is not second

    def test_validation_retry_only_retries_transient(self):
        config = validation_retry_config()
        assert config.max_attempts == 3
        assert config.base_delay == 0.2
        assert config.max_delay == 2.0
        assert config.jitter is True
        assert config.is_retryable(TransientError("blip")) is True
        assert config.is_retryable(ConnectionResetError()) is True
        assert config.is_retryable(PermanentError("rejected")) is False
        assert config.is_retryable(ValueError("bad")) is False

    def test_knowledge_search_retry(self):
        config = knowledge_search_retry_config()
        assert config.max_attempts == 2
        assert config.base_delay == 0.1
        assert config.max_delay == 1.0
        assert config.jitter is True


class TestResiliencePolicies:
    """Tests for the composition root."""

    def test_preset_breakers_registered(self):
        policies = ResiliencePolicies()

        assert set(policies.registry.list_all()) == {VALIDATION, KNOWLEDGE}
        assert policies.breaker(KNOWLEDGE).config.failure_threshold == 3
        assert policies.validation_retry.max_attempts == 3
        assert policies.knowledge_retry.max_attempts == 2

    def test_breaker_created_with_default_config(self):
        policies = ResiliencePolicies(
            default_breaker_config=CircuitBreakerConfig(failure_threshold=7),
        )

        breaker = policies.breaker("billing")
        assert breaker.config.failure_threshold == 7
        assert policies.breaker("billing") is breaker

    def test_uses_given_registry(self):
        registry = CircuitBreakerRegistry()
        policies = ResiliencePolicies(registry)
        assert policies.registry is registry
        assert VALIDATION in registry

    def test_empty_injected_registry_receives_created_breakers(self):
        registry = CircuitBreakerRegistry()
        assert len(registry) == 0

        policies = ResiliencePolicies(registry)
        billing = policies.breaker("billing")

        assert registry.get("billing") is billing
        assert registry.get(KNOWLEDGE) is policies.breaker(KNOWLEDGE)
        assert len(registry) == 3

    def test_policies_are_isolated(self):
        assert ResiliencePolicies().breaker(VALIDATION) is not ResiliencePolicies().breaker(VALIDATION)

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("BULWARK_BREAKER_FAILURE_THRESHOLD", "2")
        monkeypatch.setenv("BULWARK_RETRY_MAX_ATTEMPTS", "4")
        monkeypatch.setenv("BULWARK_RETRY_JITTER", "false")

        policies = ResiliencePolicies.from_settings(ResilienceSettings(_env_file=None))

        assert policies.default_breaker_config.failure_threshold == 2
        assert policies.default_retry.max_attempts == 4
        assert policies.default_retry.jitter is False
        # Presets keep their own thresholds
        assert policies.breaker(VALIDATION).config.failure_threshold == 5

    @pytest.mark.asyncio
    async def test_protect_returns_primary(self, scripted):
        policies = ResiliencePolicies()

        result = await policies.protect(VALIDATION, scripted(value="valid"), lambda: "needs-review")

        assert result.data == "valid"
        assert result.degraded is False

    @pytest.mark.asyncio
    async def test_protect_degrades_and_trips_breaker(self, clock, metrics, scripted):
        policies = ResiliencePolicies(clock=clock, metrics=metrics)
        primary = scripted(failures=100)

        for _ in range(3):
            result = await policies.protect(KNOWLEDGE, primary, lambda: [])
            assert result.degraded is True

        assert policies.breaker(KNOWLEDGE).get_state() is CircuitState.OPEN
        assert primary.calls == 3

        await policies.protect(KNOWLEDGE, primary, lambda: [])
        assert primary.calls == 3
        assert policies.health()[KNOWLEDGE]["rejected_count"] == 1

    @pytest.mark.asyncio
    async def test_protect_uses_default_retry(self, scripted):
        policies = ResiliencePolicies(
            default_retry=RetryConfig(max_attempts=2, base_delay=0.0, jitter=False),
        )
        primary = scripted(failures=1, value="second try")

        result = await policies.protect("billing", primary, lambda: None)

        assert result.data == "second try"
        assert primary.calls == 2

    @pytest.mark.asyncio
    async def test_protect_explicit_retry_overrides_default(self, scripted):
        policies = ResiliencePolicies(
            default_retry=RetryConfig(max_attempts=5, base_delay=0.0, jitter=False),
        )
        primary = scripted(failures=100)

        await policies.protect(
            "billing",
            primary,
            lambda: None,
            retry_config=RetryConfig(max_attempts=2, base_delay=0.0, jitter=False),
        )

        assert primary.calls == 2

    def test_health_snapshot(self):
        health = ResiliencePolicies().health()
        assert health[VALIDATION]["state"] == "closed"
        assert health[KNOWLEDGE]["failure_count"] == 0
