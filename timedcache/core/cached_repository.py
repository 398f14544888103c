"""Cached repository facade.

``CachedRepository`` implements both ``UserSource`` and ``ProductSource`` so it
can be dropped in wherever an uncached source is expected. Both entry points
share one ``TimedCache``: one TTL, one lock, one table keyed by (kind, key).
"""

import logging
from typing import Dict

from timedcache.domain.interfaces.cache import ReadThroughCache
from timedcache.domain.interfaces.source import ProductSource, Source, UserSource
from timedcache.domain.models.catalog import Product, User
from timedcache.domain.models.common import SourceKind

logger = logging.getLogger(__name__)


class CachedRepository(UserSource, ProductSource):
    """Serves users and products through a shared read-through cache."""

    def __init__(self, cache: ReadThroughCache, user_source: Source[User], product_source: Source[Product]):
        if user_source.kind == product_source.kind:
            # Same kind would put both value types in one namespace.
            logger.warning(f"User and product sources share kind '{user_source.kind}'; keys may collide")
        self.cache = cache
        self.user_source = user_source
        self.product_source = product_source

    @property
    def sources(self) -> Dict[SourceKind, Source]:
        return {self.user_source.kind: self.user_source, self.product_source.kind: self.product_source}

    def source_for(self, kind: str) -> Source:
        """Looks up a fronted source by kind.

        Raises:
            KeyError: If no source of that kind is fronted.
        """
        try:
            return self.sources[SourceKind(kind)]
        except KeyError:
            known = ", ".join(sorted(self.sources))
            raise KeyError(f"Unknown source kind '{kind}' (known: {known})") from None

    def get(self, kind: str, key: str):
        return self.cache.get(self.source_for(kind), key)

    def get_user(self, key: str) -> User:
        return self.cache.get(self.user_source, key)

    def get_product(self, key: str) -> Product:
        return self.cache.get(self.product_source, key)
