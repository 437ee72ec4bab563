"""HTTP client for the Replicate predictions API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import httpx

from ..generation.generation_errors import (
    ProviderError,
    ProviderSubmissionError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

TOKEN_PREFIXES = ("r8_", "re_")


class InferenceClient(Protocol):
    """Narrow interface the engine needs from an inference backend."""

    @property
    def available(self) -> bool: ...

    async def create_prediction(
        self,
        model_ref: str,
        input: Mapping[str, Any],
        *,
        wait_seconds: int | None = None,
    ) -> dict[str, Any]: ...

    async def create_deployment_prediction(
        self, deployment: str, input: Mapping[str, Any]
    ) -> dict[str, Any]: ...

    async def get_prediction(self, prediction_id: str) -> dict[str, Any]: ...


def validate_api_token(token: str | None) -> str | None:
    """Return a reason the token is unusable, or ``None`` when it looks valid."""

    if not token:
        return "Missing Replicate API key. Please set REPLICATE_API_TOKEN or REPLICATE_API_KEY."
    if not token.startswith(TOKEN_PREFIXES):
        return "Invalid Replicate API key format. Should start with r8_ or re_."
    return None


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, Mapping):
        for key in ("detail", "error", "title", "message"):
            value = body.get(key)
            if value:
                return str(value)
    if isinstance(body, str) and body:
        return body
    return fallback


@dataclass(slots=True)
class ReplicateClient:
    """Call the Replicate REST API with bearer authentication."""

    api_token: str | None
    api_base: str = "https://api.replicate.com/v1"
    timeout_seconds: float = 60.0
    transport: httpx.AsyncBaseTransport | None = None
    log: logging.Logger = field(default_factory=lambda: logger)
    unavailable_reason: str | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.unavailable_reason = validate_api_token(self.api_token)
        if self.unavailable_reason:
            self.log.error("replicate.client.unavailable", extra={"reason": self.unavailable_reason})

    @property
    def available(self) -> bool:
        return self.unavailable_reason is None

    async def create_prediction(
        self,
        model_ref: str,
        input: Mapping[str, Any],
        *,
        wait_seconds: int | None = None,
    ) -> dict[str, Any]:
        """Create a prediction for ``owner/name:version`` or an official ``owner/name``."""

        model, _, version = model_ref.partition(":")
        if version:
            url = f"{self.api_base}/predictions"
            body: dict[str, Any] = {"version": version, "input": dict(input)}
        else:
            url = f"{self.api_base}/models/{model}/predictions"
            body = {"input": dict(input)}
        headers = self._headers()
        if wait_seconds:
            headers["Prefer"] = f"wait={int(wait_seconds)}"
        return await self._submit(url, headers=headers, json=body, candidate=model_ref)

    async def create_deployment_prediction(
        self, deployment: str, input: Mapping[str, Any]
    ) -> dict[str, Any]:
        url = f"{self.api_base}/deployments/{deployment}/predictions"
        return await self._submit(
            url, headers=self._headers(), json={"input": dict(input)}, candidate=deployment
        )

    async def get_prediction(self, prediction_id: str) -> dict[str, Any]:
        url = f"{self.api_base}/predictions/{prediction_id}"
        headers = self._headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Replicate status request failed: {exc}") from exc
        body = self._decode(response)
        if response.status_code == 401:
            raise ProviderUnavailableError(
                _error_message(body, "Unauthorized"), status_code=response.status_code, body=body
            )
        if response.status_code != 200:
            raise ProviderError(
                _error_message(body, f"Replicate get_prediction failed with status {response.status_code}"),
                status_code=response.status_code,
                body=body,
            )
        return body

    async def _submit(
        self,
        url: str,
        *,
        headers: dict[str, str],
        json: dict[str, Any],
        candidate: str,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json=json)
        except httpx.HTTPError as exc:
            raise ProviderSubmissionError(
                f"Replicate request failed: {exc}", candidate=candidate
            ) from exc
        body = self._decode(response)
        if response.status_code == 401:
            raise ProviderUnavailableError(
                _error_message(body, "Unauthorized"), status_code=response.status_code, body=body
            )
        if response.status_code not in (200, 201, 202):
            raise ProviderSubmissionError(
                _error_message(body, f"Replicate create_prediction failed with status {response.status_code}"),
                status_code=response.status_code,
                body=body,
                candidate=candidate,
            )
        if not isinstance(body, dict) or not body.get("id"):
            raise ProviderSubmissionError(
                "Replicate did not return a prediction id",
                status_code=response.status_code,
                body=body,
                candidate=candidate,
            )
        self.log.info(
            "replicate.prediction.created",
            extra={"candidate": candidate, "prediction_id": body["id"], "status": body.get("status")},
        )
        return body

    def _headers(self) -> dict[str, str]:
        if self.unavailable_reason:
            raise ProviderUnavailableError(self.unavailable_reason)
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text


__all__ = ["InferenceClient", "ReplicateClient", "TOKEN_PREFIXES", "validate_api_token"]
