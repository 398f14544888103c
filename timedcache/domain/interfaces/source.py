"""Interfaces for the slow data sources the cache fronts.

A ``Source`` is the generic fetch capability the cache consumes. ``UserSource``
and ``ProductSource`` are the typed repository contracts callers depend on; both
the uncached sources and ``CachedRepository`` implement them.
"""

import abc
from typing import Generic, Type, TypeVar

from timedcache.domain.models.catalog import Product, User
from timedcache.domain.models.common import SourceKind

T = TypeVar("T")


class Source(abc.ABC, Generic[T]):
    """Abstract Base Class for a fetch capability producing values of type ``T``."""

    #: Namespace for this source's entries in a shared cache table.
    kind: SourceKind
    #: Type every value returned by ``fetch`` is an instance of.
    result_type: Type[T]

    @abc.abstractmethod
    def fetch(self, key: str) -> T:
        """Produces the value for ``key``.

        Must be safe to call concurrently from many threads. May be slow.

        Args:
            key: The lookup key.

        Returns:
            A freshly produced value.

        Raises:
            Exception: Any failure; the cache propagates it unchanged.
        """
        pass


class UserSource(abc.ABC):
    """Contract for anything that can look up users."""

    @abc.abstractmethod
    def get_user(self, key: str) -> User:
        pass


class ProductSource(abc.ABC):
    """Contract for anything that can look up products."""

    @abc.abstractmethod
    def get_product(self, key: str) -> Product:
        pass
