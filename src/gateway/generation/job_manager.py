"""Job submission with candidate fallback and single-shot status checks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from ..providers.providers_adapter import ProviderAdapter, SubmitOutcome
from ..providers.providers_catalog import ModelCandidate, ProviderConfig
from .fallback import try_in_order
from .generation_errors import (
    InvalidInputError,
    ProviderError,
    ProviderGenerationError,
    ProviderTimeoutError,
)
from .generation_models import GenerationRequest, JobStatusSnapshot
from .poller import PollPolicy, PredictionPoller

logger = logging.getLogger(__name__)

T = TypeVar("T")


def should_try_next_candidate(exc: Exception) -> bool:
    """Submission-side failures advance the fallback; configuration errors do not."""

    return isinstance(exc, (ProviderError, ProviderTimeoutError, ProviderGenerationError))


class JobLifecycleManager:
    """Submit jobs and reshape provider status without keeping a job table."""

    def __init__(
        self,
        adapter: ProviderAdapter,
        *,
        submit_timeout_seconds: float = 30.0,
        poll_policy: PollPolicy | None = None,
        sleep: Callable[[float], Any] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if submit_timeout_seconds <= 0:
            raise ValueError("submit_timeout_seconds must be positive")
        self._adapter = adapter
        self._submit_timeout_seconds = submit_timeout_seconds
        self._poll_policy = poll_policy or PollPolicy()
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)

    async def submit(self, request: GenerationRequest, config: ProviderConfig) -> SubmitOutcome:
        """Try ``config`` candidates in order; the first accepted submission wins."""

        def _log_failure(candidate: ModelCandidate, exc: Exception | None) -> None:
            self._logger.warning(
                "provider.candidate.failed",
                extra={
                    "provider": config.key,
                    "candidate": candidate.label,
                    "error": str(exc) if exc is not None else "empty output",
                },
            )

        async def _attempt(candidate: ModelCandidate) -> SubmitOutcome | None:
            return await self._call_with_timeout(
                self._adapter.submit(config, candidate, request),
                timeout=self._submit_timeout_seconds,
                label=f"submit {candidate.label}",
            )

        outcome = await try_in_order(
            config.candidates,
            _attempt,
            should_advance=should_try_next_candidate,
            on_failure=_log_failure,
        )
        self._logger.info(
            "generation.submitted",
            extra={"provider": config.key, "outcome": type(outcome).__name__},
        )
        return outcome

    async def check_status(self, job_id: str) -> JobStatusSnapshot:
        """Single non-blocking status query; never starts polling."""

        if not job_id or not job_id.strip():
            raise InvalidInputError("predictionId must be a non-empty string")
        snapshot = await self._adapter.fetch_status(job_id)
        self._logger.info(
            "generation.status",
            extra={"job_id": job_id, "status": snapshot.status.value},
        )
        return snapshot

    async def wait_for(
        self,
        job_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> JobStatusSnapshot:
        """Poll :meth:`check_status` until terminal, honouring ``cancel``."""

        poller = PredictionPoller(
            self.check_status,
            policy=self._poll_policy,
            sleep=self._sleep,
            logger=self._logger,
        )
        return await poller.wait(job_id, cancel=cancel)

    @staticmethod
    async def _call_with_timeout(awaitable: Awaitable[T], *, timeout: float, label: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(f"Provider operation {label} timed out after {timeout:.1f}s") from exc


__all__ = ["JobLifecycleManager", "should_try_next_candidate"]
