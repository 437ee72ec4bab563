"""Uniform submission contract over heterogeneous provider candidates."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from ..generation.generation_errors import (
    ConfigurationError,
    ProviderGenerationError,
    ProviderSubmissionError,
    ProviderTimeoutError,
)
from ..generation.generation_models import (
    GENERIC_FAILURE_MESSAGE,
    GenerationRequest,
    GenerationResult,
    JobHandle,
    JobStatus,
    JobStatusSnapshot,
)
from ..generation.poller import PollPolicy, PredictionPoller
from .providers_catalog import CandidateKind, ModelCandidate, ProviderConfig
from .providers_client import InferenceClient

logger = logging.getLogger(__name__)

SubmitOutcome = GenerationResult | JobHandle


def _parse_created_at(raw: Any) -> datetime:
    if isinstance(raw, str) and raw:
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ProviderAdapter:
    """Turn a catalog candidate plus a user prompt into a provider call.

    ``run`` candidates complete inside the call and yield a
    :class:`GenerationResult` (or ``None`` when the model produced nothing);
    ``version`` and ``deployment`` candidates yield a :class:`JobHandle`, or a
    result when the prediction already finished. A finished prediction with
    empty output yields ``None`` for every kind.
    """

    client: InferenceClient
    run_wait_seconds: int = 60
    status_timeout_seconds: float = 5.0
    poll_policy: PollPolicy = field(default_factory=PollPolicy)
    sleep: Callable[[float], Any] | None = None
    log: logging.Logger = field(default_factory=lambda: logger)

    def build_input(
        self,
        config: ProviderConfig,
        candidate: ModelCandidate,
        request: GenerationRequest,
    ) -> dict[str, Any]:
        """Merge the candidate's parameter template with the rendered prompt."""

        payload = dict(candidate.params)
        payload[config.prompt_field] = config.render_prompt(request.prompt)
        if config.negative_prompt_field and request.negative_prompt:
            payload[config.negative_prompt_field] = request.negative_prompt
        return payload

    async def submit(
        self,
        config: ProviderConfig,
        candidate: ModelCandidate,
        request: GenerationRequest,
    ) -> SubmitOutcome | None:
        payload = self.build_input(config, candidate, request)
        self.log.info(
            "provider.candidate.submit",
            extra={
                "provider": config.key,
                "candidate": candidate.label,
                "prompt_len": len(request.prompt),
            },
        )
        if candidate.kind is CandidateKind.RUN:
            return await self._run(candidate, payload)
        if candidate.kind is CandidateKind.VERSION:
            prediction = await self.client.create_prediction(candidate.ref, payload)
            return self._accepted(candidate, prediction)
        if candidate.kind is CandidateKind.DEPLOYMENT:
            prediction = await self.client.create_deployment_prediction(candidate.ref, payload)
            return self._accepted(candidate, prediction)
        raise ConfigurationError(f"Unsupported candidate kind '{candidate.kind}'")

    async def fetch_status(self, job_id: str) -> JobStatusSnapshot:
        """Query the provider once and reshape the prediction object."""

        try:
            prediction = await asyncio.wait_for(
                self.client.get_prediction(job_id), timeout=self.status_timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(
                f"Status check for {job_id} timed out after {self.status_timeout_seconds:.1f}s"
            ) from exc
        return JobStatusSnapshot.from_prediction(prediction)

    async def _run(self, candidate: ModelCandidate, payload: dict[str, Any]) -> GenerationResult | None:
        prediction = await self.client.create_prediction(
            candidate.ref, payload, wait_seconds=self.run_wait_seconds
        )
        snapshot = JobStatusSnapshot.from_prediction(prediction)
        if not snapshot.is_terminal:
            poller = PredictionPoller(self.fetch_status, policy=self.poll_policy, sleep=self.sleep)
            snapshot = await poller.wait(snapshot.id)

        if snapshot.status is not JobStatus.SUCCEEDED:
            raise ProviderGenerationError(
                snapshot.error or GENERIC_FAILURE_MESSAGE,
                job_id=snapshot.id,
                status=snapshot.status.value,
            )
        if not snapshot.output:
            self.log.warning(
                "provider.candidate.empty_output",
                extra={"candidate": candidate.label, "prediction_id": snapshot.id},
            )
            return None
        return GenerationResult(output=snapshot.output, job_id=snapshot.id)

    def _accepted(self, candidate: ModelCandidate, prediction: dict[str, Any]) -> SubmitOutcome | None:
        snapshot = JobStatusSnapshot.from_prediction(prediction)
        if snapshot.status is JobStatus.SUCCEEDED:
            if snapshot.output:
                return GenerationResult(output=snapshot.output, job_id=snapshot.id)
            self.log.warning(
                "provider.candidate.empty_output",
                extra={"candidate": candidate.label, "prediction_id": snapshot.id},
            )
            return None
        if snapshot.status in (JobStatus.FAILED, JobStatus.CANCELED):
            raise ProviderSubmissionError(
                snapshot.error or GENERIC_FAILURE_MESSAGE,
                body=prediction,
                candidate=candidate.label,
            )
        return JobHandle(
            id=snapshot.id,
            status=snapshot.status,
            created_at=_parse_created_at(prediction.get("created_at")),
        )


__all__ = ["ProviderAdapter", "SubmitOutcome"]
