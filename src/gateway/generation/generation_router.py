"""Request routing between status checks and new generations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from fastapi import status
from pydantic import ValidationError

from ..api.errors import error_from_exception
from ..cache.result_cache import ResultCache
from ..providers.providers_adapter import SubmitOutcome
from ..providers.providers_catalog import ProviderCatalog
from .generation_errors import GenerationError, InvalidInputError
from .generation_models import GenerationRequest, GenerationResult, JobStatus
from .generation_schemas import GenerationBody
from .job_manager import JobLifecycleManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RouterResponse:
    status_code: int
    body: dict[str, Any]


class GenerationRouter:
    """Entry point for the generation endpoint.

    A body carrying ``predictionId`` is always treated as a status check.
    Anything else is a new generation: validated, looked up in the result
    cache and, on a miss, submitted through :class:`JobLifecycleManager`.
    Concurrent misses for the same cache key share one upstream submission.
    Every exception is converted into a structured error response here.
    """

    def __init__(
        self,
        *,
        catalog: ProviderCatalog,
        cache: ResultCache,
        manager: JobLifecycleManager,
        strict_provider_keys: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self._catalog = catalog
        self._cache = cache
        self._manager = manager
        self._strict_provider_keys = strict_provider_keys
        self._inflight: Dict[str, asyncio.Future[SubmitOutcome]] = {}
        self._logger = logger or logging.getLogger(__name__)

    @property
    def catalog(self) -> ProviderCatalog:
        return self._catalog

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def manager(self) -> JobLifecycleManager:
        return self._manager

    async def handle(self, raw: Any) -> RouterResponse:
        try:
            body = self._parse_body(raw)
            if body.is_status_check:
                return await self._check_status(body.prediction_id or "")
            request = self._build_request(body)
            return await self._generate(request)
        except GenerationError as exc:
            self._logger.warning(
                "generation.request.failed",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
            )
            return self._error_response(exc)
        except Exception as exc:
            self._logger.exception("generation.request.unexpected_error")
            return self._error_response(exc)

    async def _check_status(self, job_id: str) -> RouterResponse:
        snapshot = await self._manager.check_status(job_id)
        if snapshot.status is JobStatus.SUCCEEDED:
            key = self._cache.pop_job(job_id)
            if key is not None and snapshot.output:
                self._cache.put(key, snapshot.output)
                self._logger.info("generation.cache.stored_polled", extra={"job_id": job_id})
        elif snapshot.is_terminal:
            self._cache.pop_job(job_id)
        return RouterResponse(status.HTTP_200_OK, snapshot.to_payload())

    async def _generate(self, request: GenerationRequest) -> RouterResponse:
        key = request.cache_key
        entry = self._cache.get_valid(key)
        if entry is not None:
            self._logger.info("generation.cache.hit", extra={"provider": request.provider_key})
            return RouterResponse(status.HTTP_200_OK, {"output": entry.output})

        outcome = await self._submit_once(request)
        if isinstance(outcome, GenerationResult):
            return RouterResponse(status.HTTP_200_OK, {"output": outcome.output})
        return RouterResponse(
            status.HTTP_200_OK,
            {
                "prediction": outcome.to_payload(),
                "jobId": outcome.id,
                "status": JobStatus.PROCESSING.value,
            },
        )

    async def _submit_once(self, request: GenerationRequest) -> SubmitOutcome:
        key = request.cache_key
        while (pending := self._inflight.get(key)) is not None:
            self._logger.info("generation.inflight.joined", extra={"provider": request.provider_key})
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if not pending.cancelled() or (current is not None and current.cancelling()):
                    raise
            # The owning request was cancelled; take over the submission.
            self._logger.info("generation.inflight.owner_cancelled", extra={"provider": request.provider_key})

        future: asyncio.Future[SubmitOutcome] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            config = self._catalog.resolve(request.provider_key)
            outcome = await self._manager.submit(request, config)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Retrieve it so an unawaited future does not log a warning.
            future.exception()
            raise
        else:
            if isinstance(outcome, GenerationResult):
                self._cache.put(key, outcome.output)
            else:
                self._cache.remember_job(outcome.id, key)
            future.set_result(outcome)
            return outcome
        finally:
            self._inflight.pop(key, None)

    def _parse_body(self, raw: Any) -> GenerationBody:
        if not isinstance(raw, Mapping):
            raise InvalidInputError("Request body must be a JSON object")
        try:
            return GenerationBody.model_validate(raw)
        except ValidationError as exc:
            raise InvalidInputError(f"Malformed request body: {exc.error_count()} invalid field(s)") from exc

    def _build_request(self, body: GenerationBody) -> GenerationRequest:
        prompt = body.prompt or ""
        if not prompt:
            raise InvalidInputError("Missing required field: prompt is required")
        config = self._catalog.resolve(body.model_type, strict=self._strict_provider_keys)
        return GenerationRequest(
            prompt=prompt,
            provider_key=config.key,
            negative_prompt=body.negative_prompt or "",
        )

    @staticmethod
    def _error_response(exc: BaseException) -> RouterResponse:
        error = error_from_exception(exc)
        return RouterResponse(error.status_code, error.to_payload())


__all__ = ["GenerationRouter", "RouterResponse"]
