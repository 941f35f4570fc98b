"""Time-bounded storage of analysis results."""

from opslens.cache.result_cache import CacheEntry, ResultCache

__all__ = ["CacheEntry", "ResultCache"]
