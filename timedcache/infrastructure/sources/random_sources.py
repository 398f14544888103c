"""Synthetic data sources standing in for slow repositories.

Every call produces a brand new entity with a random id, so a caller can tell
a cached value from a fresh fetch by comparing ids.
"""

import logging
import random
import time

from timedcache.domain.exceptions import ConfigurationError, SourceFetchError
from timedcache.domain.interfaces.source import ProductSource, Source, UserSource
from timedcache.domain.models.catalog import Product, User
from timedcache.domain.models.common import PRODUCT_KIND, USER_KIND

logger = logging.getLogger(__name__)

MAX_ID = 2**31 - 1


class _SlowSource:
    """Shared latency and key validation for the demo sources."""

    def __init__(self, latency_seconds: float = 0.0):
        if latency_seconds < 0:
            raise ConfigurationError(f"latency_seconds must not be negative, got {latency_seconds!r}")
        self.latency_seconds = latency_seconds
        self._random = random.SystemRandom()

    def _simulate(self, kind: str, key: str) -> int:
        if not key:
            raise SourceFetchError(kind, key, "key must not be empty")
        if self.latency_seconds:
            time.sleep(self.latency_seconds)
        new_id = self._random.randint(0, MAX_ID)
        logger.debug(f"Fetched {kind} '{key}' -> id={new_id}")
        return new_id


class RandomUserSource(_SlowSource, Source[User], UserSource):
    """Produces a new ``User`` with a random id on every call."""

    kind = USER_KIND
    result_type = User

    def fetch(self, key: str) -> User:
        return User(id=self._simulate(self.kind, key), first_name="FirstName", second_name="SecondName")

    def get_user(self, key: str) -> User:
        return self.fetch(key)


class RandomProductSource(_SlowSource, Source[Product], ProductSource):
    """Produces a new ``Product`` with a random id on every call."""

    kind = PRODUCT_KIND
    result_type = Product

    def fetch(self, key: str) -> Product:
        return Product(id=self._simulate(self.kind, key), name="Name")

    def get_product(self, key: str) -> Product:
        return self.fetch(key)
