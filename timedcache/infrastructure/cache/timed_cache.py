"""Sliding-TTL read-through cache shared by any number of Sources.

One flat table keyed by ``CacheKey(kind, key)`` holds entries from every Source,
all under one TTL and one ``UpgradeableRWLock``:

* hits are served under the shared lock and refresh the entry's age;
* misses and expired entries go through the upgradeable lock, which is held
  across the eviction, the fetch (unless ``fetch_under_lock`` is False) and the
  insert, escalating to the write lock only for the table mutations.

With ``fetch_under_lock`` on, concurrent misses for one key fetch exactly once,
at the price of serializing every slow-path lookup behind the slowest fetch in
flight. Turned off, slow fetches for different keys overlap but concurrent
misses for the same key may each fetch; only the first result is kept.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from timedcache.domain.exceptions import ConfigurationError
from timedcache.domain.interfaces.cache import ReadThroughCache, SourceRef
from timedcache.domain.interfaces.source import Source, T
from timedcache.domain.models.common import CacheKey, CacheStats, SourceKind
from timedcache.infrastructure.concurrency.rw_lock import UpgradeableRWLock

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5.0

_MISSING = object()


@dataclass
class CacheEntry:
    """Internal representation of a cache entry. Never handed to callers."""
    key: CacheKey
    value: Any
    created_at: float  # clock reading of the insert or of the last valid access


def _kind_of(source: SourceRef) -> SourceKind:
    if isinstance(source, str):
        return SourceKind(source)
    return SourceKind(getattr(source, "kind", type(source).__qualname__))


class TimedCache(ReadThroughCache):
    """Thread-safe get-or-populate cache with sliding expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        fetch_under_lock: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the cache.

        Args:
            ttl_seconds: Idle time after which an entry is stale. Fixed for the
                lifetime of the cache.
            fetch_under_lock: Keep the upgradeable lock while calling the Source.
            clock: Monotonic time source, injectable for tests.

        Raises:
            ConfigurationError: If ``ttl_seconds`` is not positive.
        """
        if ttl_seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {ttl_seconds!r}")
        self._ttl = float(ttl_seconds)
        self._fetch_under_lock = fetch_under_lock
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._lock = UpgradeableRWLock()

        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._fetches = 0
        self._evictions = 0

        logger.info(f"TimedCache initialized. ttl={self._ttl}s, fetch_under_lock={fetch_under_lock}")

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def fetch_under_lock(self) -> bool:
        return self._fetch_under_lock

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at < self._ttl

    def _count(self, **deltas: int) -> None:
        with self._stats_lock:
            for name, delta in deltas.items():
                setattr(self, f"_{name}", getattr(self, f"_{name}") + delta)

    def _take_fresh(self, cache_key: CacheKey, result_type: type) -> Any:
        """Returns the refreshed value of a fresh, well-typed entry, else ``_MISSING``.

        Caller must hold at least the read lock.
        """
        entry = self._entries.get(cache_key)
        if entry is None:
            return _MISSING
        now = self._clock()
        if not self._is_fresh(entry, now):
            return _MISSING
        if not isinstance(entry.value, result_type):
            logger.warning(
                f"Cache entry {cache_key} holds {type(entry.value).__name__}, "
                f"expected {result_type.__name__}; treating as a miss"
            )
            return _MISSING
        entry.created_at = now
        return entry.value

    # --- ReadThroughCache Interface Implementation ---

    def get(self, source: Source[T], key: str) -> T:
        """Returns the value for ``key``, consulting ``source`` on a miss or expiry.

        Fetch failures propagate unchanged and leave the table untouched.
        """
        cache_key = CacheKey(_kind_of(source), key)
        result_type = getattr(source, "result_type", object)

        with self._lock.read_locked():
            value = self._take_fresh(cache_key, result_type)
        if value is not _MISSING:
            self._count(hits=1)
            logger.debug(f"Cache hit for {cache_key}")
            return value

        with self._lock.upgradeable_locked():
            # Another thread may have populated or evicted the entry meanwhile.
            value = self._take_fresh(cache_key, result_type)
            if value is not _MISSING:
                self._count(hits=1)
                logger.debug(f"Cache hit for {cache_key} after waiting for populate")
                return value

            if not self._evict_if_expired(cache_key):
                # A reader refreshed the entry while the write lock was pending.
                value = self._take_fresh(cache_key, result_type)
                if value is not _MISSING:
                    self._count(hits=1)
                    logger.debug(f"Cache hit for {cache_key} refreshed during eviction")
                    return value

            self._count(misses=1)
            logger.debug(f"Cache miss for {cache_key}")

            if self._fetch_under_lock:
                return self._fetch_and_insert(source, cache_key)

        return self._fetch_and_insert(source, cache_key)

    def _evict_if_expired(self, cache_key: CacheKey) -> bool:
        """Removes the entry when it is stale. Caller must hold the upgradeable lock.

        Returns:
            True when the key has no entry afterwards, False when a fresh entry
            is still in place.
        """
        entry = self._entries.get(cache_key)
        if entry is None:
            return True
        if self._is_fresh(entry, self._clock()):
            return False
        with self._lock.write_locked():
            current = self._entries.get(cache_key)
            if current is None:
                return True
            # Fast-path readers may refresh created_at until the write lock is held.
            if current is not entry or self._is_fresh(current, self._clock()):
                logger.debug(f"Entry {cache_key} was refreshed before eviction; keeping it")
                return False
            del self._entries[cache_key]
            self._count(evictions=1)
            logger.debug(f"Evicted expired entry {cache_key}")
        return True

    def _fetch_and_insert(self, source: Source[T], cache_key: CacheKey) -> T:
        self._count(fetches=1)
        value = source.fetch(cache_key.key)
        with self._lock.write_locked():
            if cache_key in self._entries:
                logger.debug(f"Entry {cache_key} was populated concurrently; keeping the existing one")
            else:
                self._entries[cache_key] = CacheEntry(key=cache_key, value=value, created_at=self._clock())
        return value

    def invalidate(self, source: SourceRef, key: str) -> bool:
        cache_key = CacheKey(_kind_of(source), key)
        with self._lock.write_locked():
            removed = self._entries.pop(cache_key, None) is not None
        if removed:
            logger.debug(f"Invalidated {cache_key}")
        return removed

    def clear(self) -> int:
        with self._lock.write_locked():
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} cache entries.")
        return count

    def purge_expired(self) -> int:
        """Removes every expired entry. Returns the number removed."""
        with self._lock.write_locked():
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if not self._is_fresh(entry, now)]
            for cache_key in expired:
                del self._entries[cache_key]
        if expired:
            self._count(evictions=len(expired))
            logger.debug(f"Purged {len(expired)} expired entries")
        return len(expired)

    def contains(self, source: SourceRef, key: str) -> bool:
        """True when a fresh entry exists. Does not refresh it."""
        cache_key = CacheKey(_kind_of(source), key)
        with self._lock.read_locked():
            entry: Optional[CacheEntry] = self._entries.get(cache_key)
            return entry is not None and self._is_fresh(entry, self._clock())

    def stats(self) -> CacheStats:
        with self._lock.read_locked():
            size = len(self._entries)
        with self._stats_lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                fetches=self._fetches,
                evictions=self._evictions,
                size=size,
            )

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)

    def __repr__(self) -> str:
        return f"<TimedCache ttl={self._ttl}s entries={len(self)}>"
