"""In-memory, time-bounded cache of analysis results.

Entries are keyed by :func:`opslens.models.analysis.cache_key` and expire
``ttl_seconds`` after they were stored.

Expiry
------
Expired entries are removed in two ways:
    - lazily, by a :meth:`ResultCache.get` that finds the entry expired;
    - by :meth:`ResultCache.cleanup`, which an external periodic task calls to
      bound memory growth for keys that are never read again.

Locking
-------
A single lock guards the entry map. ``get`` checks expiry and deletes the
stale entry inside the same critical section, so a concurrent ``set`` for the
same key can never be lost between the check and the delete.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from opslens.models.analysis import AnalysisQuery, AnalysisResult, cache_key
from opslens.observability.logging import get_logger
from opslens.observability.metrics import (
    cache_entries,
    cache_evictions_total,
    cache_hits_total,
    cache_misses_total,
)

_DEFAULT_TTL_SECONDS: float = 30 * 60


@dataclass(frozen=True)
class CacheEntry:
    """A stored result and the monotonic clock reading at which it expires."""

    value: AnalysisResult
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResultCache:
    """Thread-safe TTL cache of :class:`AnalysisResult` values.

    Example::

        cache = ResultCache(ttl_seconds=1800)
        cache.set(query, result)
        cached = cache.get(query)  # result, or None once the TTL has passed
    """

    def __init__(
        self,
        ttl_seconds: float = _DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got: {ttl_seconds}")
        self._log = get_logger("cache.result")
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, query: AnalysisQuery) -> AnalysisResult | None:
        """Return the cached result for *query*, or None when absent or expired."""
        key = cache_key(query)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                cache_misses_total.inc()
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                cache_entries.set(len(self._entries))
                cache_evictions_total.labels(reason="expired_on_read").inc()
                cache_misses_total.inc()
                return None
            cache_hits_total.inc()
            return entry.value

    def set(self, query: AnalysisQuery, result: AnalysisResult) -> None:
        """Store *result* for *query*, replacing any previous entry."""
        key = cache_key(query)
        entry = CacheEntry(value=result, expires_at=self._clock() + self._ttl)
        with self._lock:
            self._entries[key] = entry
            cache_entries.set(len(self._entries))

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number of entries removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                del self._entries[key]
            cache_entries.set(len(self._entries))

        if expired:
            cache_evictions_total.labels(reason="sweep").inc(len(expired))
            self._log.debug("cache_sweep_complete", removed=len(expired))
        return len(expired)

    def clear(self) -> None:
        """Drop every entry regardless of expiry."""
        with self._lock:
            self._entries.clear()
            cache_entries.set(0)
