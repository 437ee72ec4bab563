"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api.errors import (
    ApiError,
    api_error_handler,
    unhandled_error_handler,
    validation_error_handler,
)
from .cache.result_cache import ResultCache
from .config import AppConfig, load_config
from .generation.generation_api import health_router
from .generation.generation_api import router as generation_router
from .generation.generation_router import GenerationRouter
from .generation.job_manager import JobLifecycleManager
from .lifecycle import run_periodic_cache_sweep
from .logging import configure_logging
from .providers.providers_adapter import ProviderAdapter
from .providers.providers_catalog import load_provider_catalog
from .providers.providers_client import InferenceClient, ReplicateClient

logger = logging.getLogger(__name__)


def create_app(
    config: AppConfig | None = None,
    *,
    client: InferenceClient | None = None,
) -> FastAPI:
    """Build FastAPI instance with the generation engine on ``app.state``."""
    cfg = config or load_config()
    configure_logging(cfg.log_level)

    catalog = load_provider_catalog(cfg.providers_path, default_provider=cfg.default_provider)
    inference_client: InferenceClient = client or ReplicateClient(
        api_token=cfg.replicate_api_token,
        api_base=cfg.replicate_api_base,
        timeout_seconds=cfg.http_timeout_seconds,
    )
    cache = ResultCache(expiry=cfg.cache_expiry)
    poll_policy = cfg.poll_policy()
    adapter = ProviderAdapter(
        client=inference_client,
        run_wait_seconds=cfg.run_wait_seconds,
        status_timeout_seconds=cfg.status_timeout_seconds,
        poll_policy=poll_policy,
    )
    manager = JobLifecycleManager(
        adapter,
        submit_timeout_seconds=cfg.submit_timeout_seconds,
        poll_policy=poll_policy,
    )
    router = GenerationRouter(
        catalog=catalog,
        cache=cache,
        manager=manager,
        strict_provider_keys=cfg.strict_provider_keys,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        shutdown_event = asyncio.Event()
        task: asyncio.Task[None] | None = None
        if cfg.cache_sweep_interval_seconds > 0:
            task = asyncio.create_task(
                run_periodic_cache_sweep(
                    cache=cache,
                    shutdown_event=shutdown_event,
                    interval_seconds=cfg.cache_sweep_interval_seconds,
                ),
                name="gateway-cache-sweep",
            )
        else:
            logger.info("Cache sweep startup skipped: disabled via config")
        app.state.cache_sweep_task = task
        try:
            yield
        finally:
            shutdown_event.set()
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            app.state.cache_sweep_task = None

    app = FastAPI(title="Prediction Gateway", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    app.add_exception_handler(ApiError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.state.config = cfg
    app.state.inference_client = inference_client
    app.state.result_cache = cache
    app.state.job_manager = manager
    app.state.generation_router = router

    app.include_router(generation_router)
    app.include_router(health_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
