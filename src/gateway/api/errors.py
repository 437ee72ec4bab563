"""Reusable error primitives for API exception handling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..generation.generation_errors import (
    GenerationError,
    InvalidInputError,
    PollingCancelledError,
    ProviderError,
    ProviderGenerationError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    UnknownProviderError,
)

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Failed to generate image."
AUTH_MESSAGE = "Authentication failed with the inference provider. Please check the API key."
MODEL_UNAVAILABLE_MESSAGE = "The selected model is currently unavailable. Please try another model."
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


@dataclass(slots=True)
class ApiError(Exception):
    """Structured application-level error for HTTP handlers."""

    status_code: int
    code: str
    message: str
    details: Mapping[str, Any] | None = None
    headers: Mapping[str, str] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = dict(self.details)
        return payload

    def to_response(self) -> JSONResponse:
        """Materialise the error into a ``JSONResponse`` instance."""

        return JSONResponse(
            status_code=self.status_code,
            content=self.to_payload(),
            headers=dict(self.headers or {}),
        )


def _details(exc: BaseException) -> dict[str, Any]:
    details: dict[str, Any] = {"name": type(exc).__name__, "message": str(exc) or type(exc).__name__}
    if isinstance(exc, ProviderError) and exc.candidate:
        details["candidate"] = exc.candidate
    if isinstance(exc, (ProviderError, ProviderUnavailableError)):
        if exc.status_code is not None or exc.body is not None:
            details["response"] = {"status": exc.status_code, "body": exc.body}
    if isinstance(exc, ProviderGenerationError):
        if exc.job_id:
            details["job_id"] = exc.job_id
        if exc.status:
            details["status"] = exc.status
    return details


def _provider_message(exc: BaseException) -> str:
    text = str(exc)
    lowered = text.lower()
    status_code = getattr(exc, "status_code", None)
    if status_code == 401 or "401" in text or "unauthorized" in lowered:
        return AUTH_MESSAGE
    if "model" in lowered and "not found" in lowered:
        return MODEL_UNAVAILABLE_MESSAGE
    if status_code == 429 or "rate limit" in lowered:
        return RATE_LIMIT_MESSAGE
    return GENERIC_MESSAGE


def error_from_exception(exc: BaseException) -> ApiError:
    """Map any exception raised while handling a request to an :class:`ApiError`."""

    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, UnknownProviderError):
        return ApiError(status.HTTP_400_BAD_REQUEST, "unknown_provider", str(exc))
    if isinstance(exc, InvalidInputError):
        return ApiError(status.HTTP_400_BAD_REQUEST, "invalid_input", str(exc))
    if isinstance(exc, ProviderUnavailableError):
        return ApiError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "provider_unavailable",
            AUTH_MESSAGE if exc.status_code == 401 else str(exc),
            details=_details(exc),
        )
    if isinstance(exc, ProviderGenerationError):
        return ApiError(
            status.HTTP_502_BAD_GATEWAY,
            "provider_generation_error",
            str(exc),
            details=_details(exc),
        )
    if isinstance(exc, ProviderError):
        code = "provider_submission_error" if exc.candidate else "provider_error"
        return ApiError(
            status.HTTP_502_BAD_GATEWAY,
            code,
            _provider_message(exc),
            details=_details(exc),
        )
    if isinstance(exc, (ProviderTimeoutError, PollingCancelledError)):
        return ApiError(
            status.HTTP_504_GATEWAY_TIMEOUT,
            "provider_timeout",
            "The inference provider did not respond in time. Please try again.",
            details=_details(exc),
        )
    if isinstance(exc, GenerationError):
        return ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "generation_error",
            _provider_message(exc),
            details=_details(exc),
        )
    return ApiError(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        _provider_message(exc),
        details=_details(exc),
    )


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    """Convert :class:`ApiError` exceptions into JSON payloads."""

    return exc.to_response()


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as ``invalid_input``."""

    return ApiError(
        status.HTTP_400_BAD_REQUEST,
        "invalid_input",
        "Malformed request body",
        details={"errors": jsonable_encoder(exc.errors())},
    ).to_response()


async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("api.unhandled_error")
    return error_from_exception(exc).to_response()


__all__ = [
    "ApiError",
    "api_error_handler",
    "error_from_exception",
    "unhandled_error_handler",
    "validation_error_handler",
]
