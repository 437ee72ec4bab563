from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.gateway.config import AppConfig, load_config

pytestmark = pytest.mark.unit


def test_defaults(monkeypatch) -> None:
    monkeypatch.delenv("GATEWAY_CACHE_SWEEP_INTERVAL_SECONDS", raising=False)

    config = load_config()

    assert config.replicate_api_token is None
    assert config.default_provider is None
    assert config.strict_provider_keys is True
    assert config.cache_expiry == timedelta(hours=1)
    assert config.cache_sweep_interval_seconds == 900.0
    assert config.run_wait_seconds < config.submit_timeout_seconds
    policy = config.poll_policy()
    assert (policy.interval_seconds, policy.max_attempts) == (2.0, 30)


@pytest.mark.parametrize("variable", ["REPLICATE_API_TOKEN", "REPLICATE_API_KEY"])
def test_token_read_from_either_variable(monkeypatch, variable: str) -> None:
    monkeypatch.setenv(variable, "r8_from_env")

    assert load_config().replicate_api_token == "r8_from_env"


def test_prefixed_settings(monkeypatch) -> None:
    monkeypatch.setenv("GATEWAY_STRICT_PROVIDER_KEYS", "false")
    monkeypatch.setenv("GATEWAY_CACHE_TTL_SECONDS", "120")
    monkeypatch.setenv("GATEWAY_DEFAULT_PROVIDER", "jaime")

    config = load_config()

    assert config.strict_provider_keys is False
    assert config.cache_expiry == timedelta(minutes=2)
    assert config.default_provider == "jaime"


def test_rejects_inverted_poll_window() -> None:
    with pytest.raises(ValidationError):
        AppConfig(poll_interval_seconds=5.0, poll_max_interval_seconds=1.0)


def test_rejects_wait_window_above_provider_limit() -> None:
    with pytest.raises(ValidationError):
        AppConfig(run_wait_seconds=61)
