"""Application settings loaded from the environment.

Credentials come from ``REPLICATE_API_TOKEN`` (or the legacy
``REPLICATE_API_KEY``); every other knob uses the ``GATEWAY_`` prefix.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .generation.poller import PollPolicy


class AppConfig(BaseSettings):
    """Pydantic settings container for the gateway."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_", extra="ignore", populate_by_name=True)

    replicate_api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "REPLICATE_API_TOKEN", "REPLICATE_API_KEY", "GATEWAY_REPLICATE_API_TOKEN"
        ),
        description="Replicate API token; must start with r8_ or re_.",
    )
    replicate_api_base: str = Field(
        default="https://api.replicate.com/v1",
        description="Base URL of the Replicate REST API.",
    )
    default_provider: str | None = Field(
        default=None,
        description="Provider used when modelType is absent; defaults to the catalog's own.",
    )
    strict_provider_keys: bool = Field(
        default=True,
        description="Reject unknown modelType values instead of using the default provider.",
    )
    providers_path: Path | None = Field(
        default=None,
        description="Optional JSON catalog replacing the built-in providers.",
    )
    cache_ttl_seconds: int = Field(default=3600, ge=1)
    cache_sweep_interval_seconds: float = Field(
        default=900.0,
        ge=0.0,
        description="Period of the expired-entry sweep; 0 disables it.",
    )
    submit_timeout_seconds: float = Field(default=30.0, gt=0)
    status_timeout_seconds: float = Field(default=5.0, gt=0)
    run_wait_seconds: int = Field(
        default=25,
        ge=1,
        le=60,
        description="Prefer: wait window for synchronous runs.",
    )
    http_timeout_seconds: float = Field(default=60.0, gt=0)
    poll_interval_seconds: float = Field(default=2.0, ge=0.0)
    poll_max_attempts: int = Field(default=30, ge=1)
    poll_backoff_factor: float = Field(default=1.0, ge=1.0)
    poll_max_interval_seconds: float = Field(default=10.0, ge=0.0)
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def _check_poll_window(self) -> "AppConfig":
        if self.poll_max_interval_seconds < self.poll_interval_seconds:
            raise ValueError("poll_max_interval_seconds must be >= poll_interval_seconds")
        return self

    @property
    def cache_expiry(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)

    def poll_policy(self) -> PollPolicy:
        return PollPolicy(
            interval_seconds=self.poll_interval_seconds,
            max_attempts=self.poll_max_attempts,
            backoff_factor=self.poll_backoff_factor,
            max_interval_seconds=self.poll_max_interval_seconds,
        )


def load_config() -> AppConfig:
    """Read settings from the process environment."""

    return AppConfig()


__all__ = ["AppConfig", "load_config"]
