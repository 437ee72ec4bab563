"""Ordered best-effort fallback across provider candidates."""

from __future__ import annotations

from typing import Awaitable, Callable, Iterable, TypeVar

from .generation_errors import ProviderSubmissionError

T = TypeVar("T")
R = TypeVar("R")

ALL_CANDIDATES_FAILED = "All models failed to generate an image"


def _always(_: Exception) -> bool:
    return True


async def try_in_order(
    candidates: Iterable[T],
    attempt: Callable[[T], Awaitable[R | None]],
    *,
    should_advance: Callable[[Exception], bool] = _always,
    on_failure: Callable[[T, Exception | None], None] | None = None,
) -> R:
    """Return the first non-``None`` result of ``attempt`` over ``candidates``.

    An exception for which ``should_advance`` is true moves on to the next
    candidate; any other exception propagates immediately. A ``None`` result
    also advances without recording an error. When every candidate is
    exhausted the last recorded error is raised.
    """

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            result = await attempt(candidate)
        except Exception as exc:
            if not should_advance(exc):
                raise
            last_error = exc
            if on_failure is not None:
                on_failure(candidate, exc)
            continue
        if result is not None:
            return result
        if on_failure is not None:
            on_failure(candidate, None)

    if last_error is not None:
        raise last_error
    raise ProviderSubmissionError(ALL_CANDIDATES_FAILED)


__all__ = ["ALL_CANDIDATES_FAILED", "try_in_order"]
