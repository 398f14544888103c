"""Interface for read-through caching.

Defines the contract for serving values from memory and falling back to a
``Source`` on a miss or an expired entry.
"""

import abc
from typing import Union

from timedcache.domain.interfaces.source import Source, T
from timedcache.domain.models.common import CacheStats, SourceKind

SourceRef = Union[Source, SourceKind, str]


class ReadThroughCache(abc.ABC):
    """Abstract Base Class for get-or-populate caches."""

    @property
    @abc.abstractmethod
    def ttl_seconds(self) -> float:
        """Idle time in seconds after which an entry is stale."""
        pass

    @property
    @abc.abstractmethod
    def fetch_under_lock(self) -> bool:
        """Whether concurrent misses wait on a single in-flight fetch."""
        pass

    @abc.abstractmethod
    def get(self, source: Source[T], key: str) -> T:
        """Returns the value for ``key`` from the cache, fetching it from ``source`` if needed.

        Args:
            source: The Source to consult on a miss or expiry.
            key: The lookup key.

        Returns:
            The cached or freshly fetched value.
        """
        pass

    @abc.abstractmethod
    def invalidate(self, source: SourceRef, key: str) -> bool:
        """Removes one entry. Returns True if an entry was removed."""
        pass

    @abc.abstractmethod
    def clear(self) -> int:
        """Removes every entry. Returns the number removed."""
        pass

    @abc.abstractmethod
    def contains(self, source: SourceRef, key: str) -> bool:
        """Checks for a fresh entry without refreshing it.

        Args:
            source: The Source, or its kind, the entry was fetched from.
            key: The lookup key.
        """
        pass

    @abc.abstractmethod
    def stats(self) -> CacheStats:
        """Returns a snapshot of the cache counters."""
        pass
