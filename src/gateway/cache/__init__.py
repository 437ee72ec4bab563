"""Result cache for completed generations."""

from .result_cache import DEFAULT_EXPIRY, CacheEntry, ResultCache

__all__ = ["CacheEntry", "DEFAULT_EXPIRY", "ResultCache"]
