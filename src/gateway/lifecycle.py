"""Lifecycle helpers wiring background tasks for FastAPI startup."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from .cache.result_cache import ResultCache

logger = logging.getLogger(__name__)


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


def sweep_cache_once(cache: ResultCache, *, now: datetime | None = None) -> int:
    """Run a single sweep and return the number of dropped entries."""

    return cache.sweep(now=now or _default_clock())


async def run_periodic_cache_sweep(
    *,
    cache: ResultCache,
    shutdown_event: asyncio.Event,
    interval_seconds: float = 900.0,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Sweep expired cache entries until ``shutdown_event`` is signalled."""

    interval = max(1.0, float(interval_seconds))
    tick = clock or _default_clock
    while not shutdown_event.is_set():
        try:
            removed = sweep_cache_once(cache, now=tick())
        except Exception:  # pragma: no cover
            logger.exception("cache.sweep.failed")
        else:
            if removed:
                logger.info("cache.sweep.purged", extra={"removed": removed, "remaining": len(cache)})
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


__all__ = ["run_periodic_cache_sweep", "sweep_cache_once"]
