"""Cancellable polling loop for asynchronous predictions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from .generation_errors import PollingCancelledError, ProviderTimeoutError
from .generation_models import JobStatusSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PollPolicy:
    """Interval and attempt budget for status polling."""

    interval_seconds: float = 2.0
    max_attempts: int = 30
    backoff_factor: float = 1.0
    max_interval_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds cannot be negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        if self.max_interval_seconds < self.interval_seconds:
            raise ValueError("max_interval_seconds must be >= interval_seconds")

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before poll number ``attempt + 1``."""

        delay = self.interval_seconds * (self.backoff_factor ** max(attempt - 1, 0))
        return min(delay, self.max_interval_seconds)


class PredictionPoller:
    """Query ``fetch`` until the prediction reaches a terminal status."""

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[JobStatusSnapshot]],
        *,
        policy: PollPolicy | None = None,
        sleep: Callable[[float], Any] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._fetch = fetch
        self._policy = policy or PollPolicy()
        self._sleep = sleep or asyncio.sleep
        self._logger = logger or logging.getLogger(__name__)

    @property
    def policy(self) -> PollPolicy:
        return self._policy

    async def wait(
        self,
        job_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> JobStatusSnapshot:
        """Poll ``job_id`` and return its terminal snapshot.

        Raises :class:`PollingCancelledError` once ``cancel`` is set and
        :class:`ProviderTimeoutError` when the attempt budget runs out. The
        upstream job is left running in both cases.
        """

        for attempt in range(1, self._policy.max_attempts + 1):
            self._raise_if_cancelled(job_id, cancel)
            snapshot = await self._fetch(job_id)
            self._logger.debug(
                "poller.attempt",
                extra={"job_id": job_id, "attempt": attempt, "status": snapshot.status.value},
            )
            if snapshot.is_terminal:
                return snapshot
            if attempt < self._policy.max_attempts:
                await self._pause(self._policy.delay_for(attempt), cancel)

        self._logger.warning(
            "poller.exhausted",
            extra={"job_id": job_id, "attempts": self._policy.max_attempts},
        )
        raise ProviderTimeoutError(
            f"Prediction {job_id} did not finish within {self._policy.max_attempts} polls"
        )

    async def _pause(self, delay: float, cancel: asyncio.Event | None) -> None:
        if cancel is None:
            await self._sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return

    def _raise_if_cancelled(self, job_id: str, cancel: asyncio.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            self._logger.info("poller.cancelled", extra={"job_id": job_id})
            raise PollingCancelledError(f"Polling for {job_id} was cancelled")


__all__ = ["PollPolicy", "PredictionPoller"]
