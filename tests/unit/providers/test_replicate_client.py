from __future__ import annotations

from typing import Any

import httpx
import pytest

from src.gateway.generation.generation_errors import (
    ProviderError,
    ProviderSubmissionError,
    ProviderUnavailableError,
)
from src.gateway.providers.providers_client import ReplicateClient, validate_api_token

pytestmark = pytest.mark.unit

TOKEN = "r8_test_token"


class DummyHTTPResponse:
    def __init__(
        self,
        status_code: int,
        json_data: dict[str, Any] | None = None,
        text: str = "",
    ) -> None:
        self.status_code = status_code
        self._json_data = json_data
        self.text = text

    def json(self) -> dict[str, Any]:
        if self._json_data is None:
            raise ValueError("No JSON data")
        return self._json_data


class DummyAsyncClient:
    def __init__(self, responses: list[DummyHTTPResponse | Exception]) -> None:
        self._responses = responses
        self.requests: list[dict[str, Any]] = []

    async def __aenter__(self) -> "DummyAsyncClient":  # pragma: no cover - helper
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:  # pragma: no cover - helper
        return None

    async def post(self, url: str, headers: dict[str, str], json: dict[str, Any]) -> DummyHTTPResponse:
        self.requests.append({"method": "POST", "url": url, "headers": headers, "json": json})
        return self._next()

    async def get(self, url: str, headers: dict[str, str]) -> DummyHTTPResponse:
        self.requests.append({"method": "GET", "url": url, "headers": headers})
        return self._next()

    def _next(self) -> DummyHTTPResponse:
        if not self._responses:
            raise RuntimeError("No responses queued")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def configure_httpx(monkeypatch, responses: list[DummyHTTPResponse | Exception]) -> DummyAsyncClient:
    client = DummyAsyncClient(responses)

    def factory(*args, **kwargs):
        return client

    monkeypatch.setattr("httpx.AsyncClient", factory)
    return client


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        (None, "Missing Replicate API key"),
        ("", "Missing Replicate API key"),
        ("sk-123", "Invalid Replicate API key format"),
        ("r8_abc", None),
        ("re_abc", None),
    ],
)
def test_token_validation(token: str | None, expected: str | None) -> None:
    reason = validate_api_token(token)
    if expected is None:
        assert reason is None
    else:
        assert reason is not None and reason.startswith(expected)


@pytest.mark.asyncio
async def test_unavailable_client_never_calls_backend(monkeypatch) -> None:
    http = configure_httpx(monkeypatch, [])
    client = ReplicateClient(api_token="bad-token")

    assert client.available is False
    with pytest.raises(ProviderUnavailableError, match="Invalid Replicate API key format"):
        await client.create_prediction("owner/model:abc", {"prompt": "x"})
    with pytest.raises(ProviderUnavailableError):
        await client.get_prediction("p-1")
    assert http.requests == []


@pytest.mark.asyncio
async def test_versioned_run_posts_to_predictions_with_prefer_wait(monkeypatch) -> None:
    http = configure_httpx(
        monkeypatch,
        [DummyHTTPResponse(201, {"id": "p-1", "status": "succeeded", "output": ["https://img/1.png"]})],
    )
    client = ReplicateClient(api_token=TOKEN)

    body = await client.create_prediction("owner/model:abc", {"prompt": "a cat"}, wait_seconds=25)

    assert body["id"] == "p-1"
    request = http.requests[0]
    assert request["url"] == "https://api.replicate.com/v1/predictions"
    assert request["json"] == {"version": "abc", "input": {"prompt": "a cat"}}
    assert request["headers"]["Authorization"] == f"Bearer {TOKEN}"
    assert request["headers"]["Prefer"] == "wait=25"


@pytest.mark.asyncio
async def test_unversioned_ref_uses_models_endpoint(monkeypatch) -> None:
    http = configure_httpx(monkeypatch, [DummyHTTPResponse(201, {"id": "p-2", "status": "starting"})])
    client = ReplicateClient(api_token=TOKEN)

    await client.create_prediction("owner/model", {"prompt": "a cat"})

    request = http.requests[0]
    assert request["url"] == "https://api.replicate.com/v1/models/owner/model/predictions"
    assert request["json"] == {"input": {"prompt": "a cat"}}
    assert "Prefer" not in request["headers"]


@pytest.mark.asyncio
async def test_deployment_endpoint(monkeypatch) -> None:
    http = configure_httpx(monkeypatch, [DummyHTTPResponse(201, {"id": "p-3", "status": "starting"})])
    client = ReplicateClient(api_token=TOKEN, api_base="https://replicate.test/v1")

    await client.create_deployment_prediction("owner/deploy", {"text": "hello"})

    assert http.requests[0]["url"] == "https://replicate.test/v1/deployments/owner/deploy/predictions"


@pytest.mark.asyncio
async def test_rejected_submission_carries_status_and_body(monkeypatch) -> None:
    configure_httpx(monkeypatch, [DummyHTTPResponse(422, {"detail": "Invalid version or not permitted"})])
    client = ReplicateClient(api_token=TOKEN)

    with pytest.raises(ProviderSubmissionError) as excinfo:
        await client.create_prediction("owner/model:abc", {"prompt": "a cat"})

    assert str(excinfo.value) == "Invalid version or not permitted"
    assert excinfo.value.status_code == 422
    assert excinfo.value.body == {"detail": "Invalid version or not permitted"}
    assert excinfo.value.candidate == "owner/model:abc"


@pytest.mark.asyncio
async def test_unauthorized_maps_to_unavailable(monkeypatch) -> None:
    configure_httpx(monkeypatch, [DummyHTTPResponse(401, {"detail": "Unauthenticated"})])
    client = ReplicateClient(api_token=TOKEN)

    with pytest.raises(ProviderUnavailableError) as excinfo:
        await client.create_prediction("owner/model:abc", {"prompt": "a cat"})

    assert excinfo.value.status_code == 401
    assert excinfo.value.body == {"detail": "Unauthenticated"}


@pytest.mark.asyncio
async def test_missing_prediction_id_is_rejected(monkeypatch) -> None:
    configure_httpx(monkeypatch, [DummyHTTPResponse(200, {"status": "starting"})])
    client = ReplicateClient(api_token=TOKEN)

    with pytest.raises(ProviderSubmissionError, match="prediction id"):
        await client.create_prediction("owner/model:abc", {"prompt": "a cat"})


@pytest.mark.asyncio
async def test_network_error_is_wrapped(monkeypatch) -> None:
    configure_httpx(monkeypatch, [httpx.ConnectError("connection refused")])
    client = ReplicateClient(api_token=TOKEN)

    with pytest.raises(ProviderSubmissionError, match="connection refused"):
        await client.create_prediction("owner/model:abc", {"prompt": "a cat"})


@pytest.mark.asyncio
async def test_get_prediction_success_and_failure(monkeypatch) -> None:
    http = configure_httpx(
        monkeypatch,
        [
            DummyHTTPResponse(200, {"id": "p-1", "status": "processing"}),
            DummyHTTPResponse(404, None, text="Not found"),
        ],
    )
    client = ReplicateClient(api_token=TOKEN)

    body = await client.get_prediction("p-1")
    assert body == {"id": "p-1", "status": "processing"}
    assert http.requests[0]["url"] == "https://api.replicate.com/v1/predictions/p-1"

    with pytest.raises(ProviderError) as excinfo:
        await client.get_prediction("p-missing")
    assert excinfo.value.status_code == 404
    assert excinfo.value.body == "Not found"
    assert not isinstance(excinfo.value, ProviderSubmissionError)
