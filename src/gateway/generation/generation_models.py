"""Data structures shared by the generation pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Union

from .generation_errors import InvalidInputError, ProviderGenerationError

Output = Union[str, list[str]]

GENERIC_FAILURE_MESSAGE = "Generation failed."


class JobStatus(StrEnum):
    """Prediction statuses reported by the inference provider."""

    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def from_provider(cls, raw: Any) -> "JobStatus":
        """Parse a provider status string, folding ``aborted`` into ``canceled``."""

        value = str(raw or "").strip().lower()
        if value == "aborted":
            return cls.CANCELED
        try:
            return cls(value)
        except ValueError:
            raise ProviderGenerationError(f"Unexpected prediction status '{raw}'") from None


TERMINAL_STATUSES = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELED})


def build_cache_key(provider_key: str, prompt: str, negative_prompt: str = "") -> str:
    """Return the exact-match cache key for a generation request."""

    return json.dumps([provider_key, prompt, negative_prompt], ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Immutable description of a new generation job."""

    prompt: str
    provider_key: str
    negative_prompt: str = ""

    def __post_init__(self) -> None:
        if not self.prompt:
            raise InvalidInputError("Missing required field: prompt is required")

    @property
    def cache_key(self) -> str:
        return build_cache_key(self.provider_key, self.prompt, self.negative_prompt)


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Terminal output of a job that completed within one invocation."""

    output: Output
    job_id: str | None = None
    status: JobStatus = JobStatus.SUCCEEDED


@dataclass(frozen=True, slots=True)
class JobHandle:
    """Reference to an asynchronous prediction accepted by the provider."""

    id: str
    status: JobStatus
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "status": self.status.value}


@dataclass(frozen=True, slots=True)
class JobStatusSnapshot:
    """Reshaped view of a single provider status query."""

    id: str
    status: JobStatus
    output: Output | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_prediction(cls, prediction: dict[str, Any]) -> "JobStatusSnapshot":
        """Build a snapshot from a raw prediction object."""

        status = JobStatus.from_provider(prediction.get("status"))
        job_id = str(prediction.get("id") or "")
        if status is JobStatus.SUCCEEDED:
            return cls(id=job_id, status=status, output=prediction.get("output"))
        if status in (JobStatus.FAILED, JobStatus.CANCELED):
            message = prediction.get("error")
            return cls(
                id=job_id,
                status=status,
                error=str(message) if message else GENERIC_FAILURE_MESSAGE,
            )
        return cls(id=job_id, status=status)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "status": self.status.value}
        if self.output is not None:
            payload["output"] = self.output
        if self.error is not None:
            payload["error"] = self.error
        return payload


__all__ = [
    "GENERIC_FAILURE_MESSAGE",
    "GenerationRequest",
    "GenerationResult",
    "JobHandle",
    "JobStatus",
    "JobStatusSnapshot",
    "Output",
    "TERMINAL_STATUSES",
    "build_cache_key",
]
