"""Defines common Value Objects used across the cache.

These objects represent simple values like source kinds and composite cache
keys, ensuring consistency and type safety.
"""

from dataclasses import dataclass
from typing import NamedTuple, NewType

# === Caching Context ===
SourceKind = NewType("SourceKind", str)        # Logical value type a Source produces, e.g. 'user'

USER_KIND = SourceKind("user")
PRODUCT_KIND = SourceKind("product")


class CacheKey(NamedTuple):
    """Composite table key. Namespacing by kind keeps sources from colliding."""
    kind: SourceKind
    key: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.key}"


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time snapshot of cache counters."""
    hits: int = 0
    misses: int = 0
    fetches: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_ratio(self) -> float:
        """Fraction of lookups served from the table (0.0 when nothing was looked up)."""
        return self.hits / self.lookups if self.lookups else 0.0
