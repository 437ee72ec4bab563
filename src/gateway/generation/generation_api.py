"""HTTP routes for generation requests."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from .generation_router import GenerationRouter

router = APIRouter(prefix="/api", tags=["generation"])
health_router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


def get_generation_router(request: Request) -> GenerationRouter:
    """Fetch the generation router from application state."""
    try:
        return request.app.state.generation_router  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover
        raise RuntimeError("GenerationRouter is not configured") from exc


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return await request.json()
    except ValueError:
        logger.warning("generation.request.invalid_json", extra={"size": len(raw)})
        return None


@router.post("/generate")
async def generate(
    request: Request,
    generation: GenerationRouter = Depends(get_generation_router),
) -> JSONResponse:
    """Start a generation or check the status of a running prediction."""
    body = await _read_json(request)
    result = await generation.handle(body)
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.get("/providers")
async def list_providers(
    generation: GenerationRouter = Depends(get_generation_router),
) -> dict[str, Any]:
    """Short reference of configured providers and their candidates."""
    catalog = generation.catalog
    return {"default": catalog.default_key, "providers": catalog.describe()}


@health_router.get("/healthz")
async def healthz(request: Request) -> dict[str, Any]:
    client = getattr(request.app.state, "inference_client", None)
    generation: GenerationRouter | None = getattr(request.app.state, "generation_router", None)
    return {
        "status": "ok",
        "provider_available": bool(client is not None and client.available),
        "cache_entries": len(generation.cache) if generation is not None else 0,
    }


__all__ = ["generate", "get_generation_router", "health_router", "healthz", "list_providers", "router"]
