"""Domain-specific exceptions for the generation pipeline."""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
    """Base class for generation-related errors."""


class ConfigurationError(GenerationError):
    """Raised when the provider catalog or settings cannot be loaded."""


class InvalidInputError(GenerationError):
    """Raised when the request body is missing fields or is malformed."""


class UnknownProviderError(InvalidInputError):
    """Raised when ``modelType`` names a provider absent from the catalog."""

    def __init__(self, provider_key: str) -> None:
        super().__init__(f"Unknown model type: {provider_key}")
        self.provider_key = provider_key


class ProviderUnavailableError(GenerationError):
    """Raised when inference credentials are missing, malformed or rejected.

    ``status_code`` is set only when the backend itself refused the token.
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderError(GenerationError):
    """Backend-side failure carrying the backend status code and body."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        candidate: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.candidate = candidate


class ProviderSubmissionError(ProviderError):
    """Raised when a candidate model or deployment rejects a submission."""


class ProviderGenerationError(GenerationError):
    """Raised when an accepted job ends in ``failed`` or ``canceled``."""

    def __init__(self, message: str, *, job_id: str | None = None, status: str | None = None) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.status = status


class ProviderTimeoutError(GenerationError):
    """Raised when a provider call or polling exceeds its deadline."""


class PollingCancelledError(GenerationError):
    """Raised when a caller abandons polling through its cancel token."""
