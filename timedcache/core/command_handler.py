"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), runs them against the
``CachedRepository`` and reports through the ``UserInterface``.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List

from timedcache.core.cached_repository import CachedRepository
from timedcache.domain.exceptions import CacheError
from timedcache.domain.interfaces.cache import ReadThroughCache
from timedcache.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)

DEMO_USER_KEY = "user1"
DEMO_PRODUCT_KEY = "prod1"


class CommandHandler:
    """Handles incoming commands and delegates to the cached repository."""

    def __init__(
        self,
        repository: CachedRepository,
        ui: UserInterface,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repository = repository
        self.ui = ui
        self._sleep = sleep

    @property
    def cache(self) -> ReadThroughCache:
        return self.repository.cache

    def handle_demo(self, expire_wait: float, fresh_wait: float) -> bool:
        """Runs the expiry/freshness scenario. Returns True when the cache behaved.

        A user is fetched, the handler waits ``expire_wait`` seconds and fetches it
        again expecting a new id. A product is fetched, the handler waits
        ``fresh_wait`` seconds and fetches it again expecting the same id.
        """
        ttl = self.cache.ttl_seconds
        if expire_wait <= ttl:
            self.ui.display_warning(f"expire wait {expire_wait}s does not exceed the TTL ({ttl}s)")
        if fresh_wait >= ttl:
            self.ui.display_warning(f"fresh wait {fresh_wait}s is not below the TTL ({ttl}s)")

        try:
            user = self.repository.get_user(DEMO_USER_KEY)
            self.ui.display_info(f"Fetched {DEMO_USER_KEY}: id={user.id}. Waiting {expire_wait}s...")
            self._sleep(expire_wait)
            new_user = self.repository.get_user(DEMO_USER_KEY)
            if user.id == new_user.id:
                self.ui.display_error("Cache doesn't work: new user has not been created")
                return False

            product = self.repository.get_product(DEMO_PRODUCT_KEY)
            self.ui.display_info(f"Fetched {DEMO_PRODUCT_KEY}: id={product.id}. Waiting {fresh_wait}s...")
            self._sleep(fresh_wait)
            new_product = self.repository.get_product(DEMO_PRODUCT_KEY)
            if product.id != new_product.id:
                self.ui.display_error("Cache doesn't work: new product has been created")
                return False
        except CacheError as e:
            logger.error(f"Demo failed: {e}", exc_info=True)
            self.ui.display_error(f"Demo command failed: {e}")
            return False

        self.ui.display_success("Cache works correct")
        return True

    def handle_get(self, kind: str, key: str, repeat: int = 1, interval: float = 0.0) -> List[Dict[str, Any]]:
        """Looks ``key`` up ``repeat`` times, ``interval`` seconds apart, and shows each result."""
        rows: List[Dict[str, Any]] = []
        try:
            for attempt in range(1, repeat + 1):
                if attempt > 1 and interval:
                    self._sleep(interval)
                fetches_before = self.cache.stats().fetches
                value = self.repository.get(kind, key)
                fetched = self.cache.stats().fetches > fetches_before
                rows.append({"#": attempt, "key": key, "value": value, "served": "source" if fetched else "cache"})
        except (KeyError, CacheError) as e:
            logger.error(f"Lookup of {kind} '{key}' failed: {e}", exc_info=True)
            self.ui.display_error(f"Get command failed: {e}")
            return rows

        self.ui.display_lookups(rows, title=f"{kind} lookups")
        self._display_stats()
        return rows

    def handle_stress(self, kind: str, key: str, threads: int) -> Dict[str, Any]:
        """Fires ``threads`` concurrent lookups of one key and reports the fetch count."""
        try:
            source = self.repository.source_for(kind)
        except KeyError as e:
            self.ui.display_error(f"Stress command failed: {e}")
            return {}

        self.cache.invalidate(source, key)
        barrier = threading.Barrier(threads)
        fetches_before = self.cache.stats().fetches

        def worker() -> Any:
            barrier.wait()
            return self.cache.get(source, key)

        try:
            with ThreadPoolExecutor(max_workers=threads) as pool:
                futures = [pool.submit(worker) for _ in range(threads)]
                results = [future.result() for future in futures]
        except CacheError as e:
            logger.error(f"Concurrent lookup of {kind} '{key}' failed: {e}", exc_info=True)
            self.ui.display_error(f"Stress command failed: {e}")
            return {}

        report = {
            "threads": threads,
            "fetches": self.cache.stats().fetches - fetches_before,
            "distinct_values": len({repr(value) for value in results}),
            "entries_for_key": int(self.cache.contains(source, key)),
        }
        mode = "under lock" if self.cache.fetch_under_lock else "outside lock"
        self.ui.display_lookups([report], title=f"Concurrent miss ({mode})")
        return report

    def _display_stats(self) -> None:
        stats = self.cache.stats()
        self.ui.display_info(
            f"hits={stats.hits} misses={stats.misses} fetches={stats.fetches} "
            f"evictions={stats.evictions} size={stats.size} hit_ratio={stats.hit_ratio:.0%}"
        )
