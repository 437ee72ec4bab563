"""Time-bounded memoisation of completed generation outputs."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict

from ..generation.generation_models import Output

DEFAULT_EXPIRY = timedelta(hours=1)


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    output: Output
    cached_at: datetime

    def is_valid(self, *, now: datetime, expiry: timedelta) -> bool:
        return now - self.cached_at < expiry


@dataclass(frozen=True, slots=True)
class _PendingJob:
    cache_key: str
    registered_at: datetime


class ResultCache:
    """In-process result cache with lazy expiry and an optional sweep.

    Entries are never evicted on read: an expired entry simply stops being
    valid and stays resident until it is overwritten or :meth:`sweep` runs.
    The cache also remembers which cache key an asynchronous job belongs to,
    so a later status check can store the polled output.
    """

    def __init__(
        self,
        *,
        expiry: timedelta = DEFAULT_EXPIRY,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if expiry <= timedelta(0):
            raise ValueError("expiry must be positive")
        self._expiry = expiry
        self._clock = clock or _default_clock
        self._entries: Dict[str, CacheEntry] = {}
        self._pending: Dict[str, _PendingJob] = {}
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def expiry(self) -> timedelta:
        return self._expiry

    def is_valid(self, key: str, *, now: datetime | None = None) -> bool:
        current = now or self._clock()
        with self._lock:
            entry = self._entries.get(key)
        return entry is not None and entry.is_valid(now=current, expiry=self._expiry)

    def get(self, key: str) -> CacheEntry | None:
        """Return the stored entry for ``key`` regardless of validity."""

        with self._lock:
            return self._entries.get(key)

    def get_valid(self, key: str, *, now: datetime | None = None) -> CacheEntry | None:
        """Return the entry only while it is still valid."""

        current = now or self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not entry.is_valid(now=current, expiry=self._expiry):
            return None
        return entry

    def put(self, key: str, output: Output, *, now: datetime | None = None) -> CacheEntry:
        entry = CacheEntry(key=key, output=output, cached_at=now or self._clock())
        with self._lock:
            self._entries[key] = entry
        self._logger.debug("cache.put", extra={"cache_key": key})
        return entry

    @property
    def pending_jobs(self) -> int:
        with self._lock:
            return len(self._pending)

    def remember_job(self, job_id: str, key: str, *, now: datetime | None = None) -> None:
        """Associate an asynchronous job with the cache key it will fill.

        Links older than the expiry are pruned here as well, so they stay
        bounded when the periodic sweep is disabled.
        """

        current = now or self._clock()
        with self._lock:
            self._drop_stale_jobs(current)
            self._pending[job_id] = _PendingJob(cache_key=key, registered_at=current)

    def pop_job(self, job_id: str, *, now: datetime | None = None) -> str | None:
        """Forget ``job_id`` and return its cache key if it is still tracked."""

        current = now or self._clock()
        with self._lock:
            pending = self._pending.pop(job_id, None)
        if pending is None or current - pending.registered_at >= self._expiry:
            return None
        return pending.cache_key

    def sweep(self, *, now: datetime | None = None) -> int:
        """Drop expired entries and stale job associations."""

        current = now or self._clock()
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if not entry.is_valid(now=current, expiry=self._expiry)
            ]
            for key in expired:
                del self._entries[key]
            self._drop_stale_jobs(current)
        return len(expired)

    def _drop_stale_jobs(self, current: datetime) -> None:
        stale = [
            job_id
            for job_id, pending in self._pending.items()
            if current - pending.registered_at >= self._expiry
        ]
        for job_id in stale:
            del self._pending[job_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CacheEntry", "DEFAULT_EXPIRY", "ResultCache"]
