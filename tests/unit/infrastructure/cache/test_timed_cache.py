import threading
import time

import pytest

from timedcache.domain.exceptions import ConfigurationError, SourceFetchError
from timedcache.domain.interfaces.source import Source
from timedcache.domain.models.common import CacheKey, SourceKind
from timedcache.infrastructure.cache.timed_cache import TimedCache


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


# --- Construction ---

@pytest.mark.parametrize("ttl", [0, -1, -0.5])
def test_rejects_non_positive_ttl(ttl):
    with pytest.raises(ConfigurationError):
        TimedCache(ttl_seconds=ttl)


def test_ttl_is_fixed_at_construction():
    cache = TimedCache(ttl_seconds=2.5)
    assert cache.ttl_seconds == 2.5
    with pytest.raises(AttributeError):
        cache.ttl_seconds = 10


# --- Freshness / expiry ---

def test_miss_fetches_and_caches(cache, source):
    value = cache.get(source, "w1")
    assert value.key == "w1"
    assert source.calls == ["w1"]
    assert len(cache) == 1


def test_fresh_hit_returns_cached_value_without_fetching(cache, source, clock):
    first = cache.get(source, "w1")
    clock.advance(2)
    second = cache.get(source, "w1")
    assert second == first
    assert source.call_count == 1


def test_expired_entry_is_refetched(cache, source, clock):
    first = cache.get(source, "w1")
    clock.advance(6)
    second = cache.get(source, "w1")
    assert second.serial != first.serial
    assert source.call_count == 2
    assert len(cache) == 1


def test_entry_aged_exactly_ttl_is_expired(cache, source, clock):
    cache.get(source, "w1")
    clock.advance(5)
    cache.get(source, "w1")
    assert source.call_count == 2


def test_sliding_window_postpones_expiry(cache, source, clock):
    first = cache.get(source, "w1")
    for _ in range(10):
        clock.advance(4.9)
        assert cache.get(source, "w1") == first
    assert source.call_count == 1

    clock.advance(5)
    assert cache.get(source, "w1") != first
    assert source.call_count == 2


def test_refetched_value_is_served_afterwards(cache, source, clock):
    cache.get(source, "w1")
    clock.advance(10)
    refreshed = cache.get(source, "w1")
    clock.advance(1)
    assert cache.get(source, "w1") == refreshed


def test_expired_entry_is_removed_before_refetch(clock):
    cache = TimedCache(ttl_seconds=5, clock=clock)
    seen_sizes = []

    class ObservingSource(Source[int]):
        kind = SourceKind("observed")
        result_type = int

        def fetch(self, key):
            seen_sizes.append((len(cache), cache.contains(self, key)))
            return len(seen_sizes)

    source = ObservingSource()
    cache.get(source, "k")
    clock.advance(6)
    cache.get(source, "k")
    assert seen_sizes == [(0, False), (0, False)]
    assert cache.stats().evictions == 1


# --- Key isolation ---

def test_no_cross_key_interference(cache, source, clock):
    a = cache.get(source, "a")
    b = cache.get(source, "b")
    clock.advance(3)
    assert cache.get(source, "a") == a  # refreshes a only
    clock.advance(3)
    assert cache.get(source, "a") == a
    new_b = cache.get(source, "b")
    assert new_b != b
    assert new_b.key == "b"
    assert source.calls == ["a", "b", "b"]


def test_same_key_from_different_kinds_is_cached_separately(cache, source_factory):
    users = source_factory("user")
    products = source_factory("product")
    user_value = cache.get(users, "k")
    product_value = cache.get(products, "k")

    assert len(cache) == 2
    assert cache.get(users, "k") is user_value
    assert cache.get(products, "k") is product_value
    assert users.call_count == 1
    assert products.call_count == 1


def test_type_mismatch_on_hit_is_treated_as_miss(cache, source):
    class TextSource(Source[str]):
        kind = source.kind
        result_type = str

        def __init__(self):
            self.calls = 0

        def fetch(self, key):
            self.calls += 1
            return f"text-{key}"

    text_source = TextSource()
    widget = cache.get(source, "k")

    assert cache.get(text_source, "k") == "text-k"
    assert cache.get(text_source, "k") == "text-k"
    assert text_source.calls == 2
    # The first-inserted entry is kept.
    assert cache.get(source, "k") is widget
    assert len(cache) == 1


def test_value_returned_matches_requested_key(cache, source):
    for key in ["x", "y", "z", "x", "y"]:
        assert cache.get(source, key).key == key


# --- Failures ---

def test_fetch_failure_propagates_and_leaves_no_trace(cache, source):
    source.fail_keys.add("bad")
    with pytest.raises(SourceFetchError) as excinfo:
        cache.get(source, "bad")
    assert excinfo.value.key == "bad"
    assert len(cache) == 0

    source.fail_keys.clear()
    value = cache.get(source, "bad")
    assert value.key == "bad"
    assert source.call_count == 2


def test_failed_refetch_leaves_key_absent(cache, source, clock):
    cache.get(source, "w1")
    clock.advance(6)
    source.fail_keys.add("w1")
    with pytest.raises(SourceFetchError):
        cache.get(source, "w1")
    assert not cache.contains(source, "w1")
    assert len(cache) == 0


def test_fetch_failure_releases_locks(cache, source):
    source.fail_keys.add("bad")
    with pytest.raises(SourceFetchError):
        cache.get(source, "bad")
    # A second thread must be able to take every lock mode.
    worker = threading.Thread(target=cache.get, args=(source, "good"))
    worker.start()
    worker.join(timeout=2)
    assert not worker.is_alive()
    assert cache.contains(source, "good")


# --- Maintenance operations ---

def test_invalidate_removes_single_entry(cache, source):
    cache.get(source, "a")
    cache.get(source, "b")
    assert cache.invalidate(source, "a") is True
    assert cache.invalidate(source.kind, "a") is False
    assert not cache.contains(source, "a")
    assert cache.contains("widget", "b")


def test_clear_returns_number_of_entries(cache, source):
    for key in "abc":
        cache.get(source, key)
    assert cache.clear() == 3
    assert len(cache) == 0


def test_purge_expired_only_drops_stale_entries(cache, source, clock):
    cache.get(source, "old")
    clock.advance(3)
    cache.get(source, "new")
    clock.advance(3)
    assert cache.purge_expired() == 1
    assert not cache.contains(source, "old")
    assert cache.contains(source, "new")


def test_contains_does_not_refresh(cache, source, clock):
    cache.get(source, "w1")
    clock.advance(4)
    assert cache.contains(source, "w1")
    clock.advance(2)
    assert not cache.contains(source, "w1")


def test_stats_counts_hits_misses_and_fetches(cache, source, clock):
    cache.get(source, "a")
    cache.get(source, "a")
    cache.get(source, "b")
    clock.advance(6)
    cache.get(source, "a")

    stats = cache.stats()
    assert stats.hits == 1
    assert stats.misses == 3
    assert stats.fetches == 3
    assert stats.evictions == 1
    assert stats.size == 2
    assert stats.hit_ratio == pytest.approx(0.25)


def test_cache_key_renders_kind_and_key():
    assert str(CacheKey(SourceKind("user"), "user1")) == "user:user1"


# --- Concurrency ---

def _run_concurrently(target, count):
    results = [None] * count
    errors = []
    barrier = threading.Barrier(count)

    def worker(index):
        barrier.wait()
        try:
            results[index] = target()
        except Exception as e:  # collected and asserted on by the test
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    return threads, results, errors


def test_concurrent_misses_fetch_exactly_once_under_lock(clock, source_factory):
    gate = threading.Event()
    source = source_factory(gate=gate)
    cache = TimedCache(ttl_seconds=5, clock=clock, fetch_under_lock=True)

    threads, results, errors = _run_concurrently(lambda: cache.get(source, "hot"), 16)
    assert _wait_until(lambda: source.call_count == 1)
    time.sleep(0.05)
    gate.set()
    for thread in threads:
        thread.join(timeout=5)

    assert not errors
    assert source.call_count == 1
    assert len({value.serial for value in results}) == 1
    assert all(value.key == "hot" for value in results)
    assert len(cache) == 1


def test_concurrent_misses_outside_lock_keep_a_single_entry(clock, source_factory):
    gate = threading.Event()
    source = source_factory(gate=gate)
    cache = TimedCache(ttl_seconds=5, clock=clock, fetch_under_lock=False)
    callers = 8

    threads, results, errors = _run_concurrently(lambda: cache.get(source, "hot"), callers)
    # Nothing is inserted until the gate opens, so every caller misses.
    assert _wait_until(lambda: source.call_count == callers)
    gate.set()
    for thread in threads:
        thread.join(timeout=5)

    assert not errors
    assert source.call_count == callers
    serials = {value.serial for value in results}
    assert len(serials) == callers  # each caller gets its own fetch result
    assert len(cache) == 1
    assert cache.get(source, "hot").serial in serials
    assert source.call_count == callers


def test_hits_proceed_while_a_fetch_holds_the_lock(clock, source_factory):
    gate = threading.Event()
    source = source_factory()
    cache = TimedCache(ttl_seconds=5, clock=clock, fetch_under_lock=True)
    warm = cache.get(source, "warm")
    source.gate = gate

    slow = threading.Thread(target=cache.get, args=(source, "cold"))
    slow.start()
    assert _wait_until(lambda: source.call_count == 2)

    reader_result = []
    reader = threading.Thread(target=lambda: reader_result.append(cache.get(source, "warm")))
    reader.start()
    reader.join(timeout=2)
    assert not reader.is_alive()
    assert reader_result == [warm]

    gate.set()
    slow.join(timeout=5)


def test_fetch_under_lock_serializes_other_misses(clock, source_factory):
    gate = threading.Event()
    source = source_factory(gate=gate)
    cache = TimedCache(ttl_seconds=5, clock=clock, fetch_under_lock=True)

    first = threading.Thread(target=cache.get, args=(source, "a"))
    first.start()
    assert _wait_until(lambda: source.call_count == 1)
    second = threading.Thread(target=cache.get, args=(source, "b"))
    second.start()
    time.sleep(0.1)
    assert source.calls == ["a"]

    gate.set()
    first.join(timeout=5)
    second.join(timeout=5)
    assert source.calls == ["a", "b"]


def test_fetch_outside_lock_overlaps_misses_for_different_keys(clock, source_factory):
    gate = threading.Event()
    source = source_factory(gate=gate)
    cache = TimedCache(ttl_seconds=5, clock=clock, fetch_under_lock=False)

    threads = [threading.Thread(target=cache.get, args=(source, key)) for key in ("a", "b")]
    for thread in threads:
        thread.start()
    assert _wait_until(lambda: source.call_count == 2)
    gate.set()
    for thread in threads:
        thread.join(timeout=5)
    assert len(cache) == 2


class PausingClock:
    """Clock that parks one chosen thread inside its next reading."""

    def __init__(self, now: float = 0.0):
        self.now = now
        self.paused_thread = None
        self.paused_reading = None
        self.entered = threading.Event()
        self.resume = threading.Event()

    def __call__(self) -> float:
        if threading.get_ident() == self.paused_thread:
            self.paused_thread = None
            self.entered.set()
            self.resume.wait(timeout=5)
            return self.paused_reading
        return self.now


def test_entry_refreshed_by_reader_is_not_evicted_by_pending_writer(source):
    clock = PausingClock(now=0.0)
    cache = TimedCache(ttl_seconds=5, clock=clock)
    first = cache.get(source, "w1")
    clock.now = 5.0

    reader_result = []

    def reader():
        # Sees the entry one tick before expiry and stays inside the read lock.
        clock.paused_reading = 4.99
        clock.paused_thread = threading.get_ident()
        reader_result.append(cache.get(source, "w1"))

    reader_thread = threading.Thread(target=reader)
    reader_thread.start()
    assert clock.entered.wait(timeout=5)

    updater_result = []
    updater_thread = threading.Thread(target=lambda: updater_result.append(cache.get(source, "w1")))
    updater_thread.start()
    assert _wait_until(lambda: cache._lock._pending_writers == 1)

    clock.resume.set()
    reader_thread.join(timeout=5)
    updater_thread.join(timeout=5)

    assert reader_result == [first]
    assert updater_result == [first]
    assert source.call_count == 1
    assert cache.stats().evictions == 0
    assert len(cache) == 1


def test_many_threads_many_keys_stay_consistent():
    cache = TimedCache(ttl_seconds=0.05)
    errors = []

    class KeyEcho(Source[str]):
        kind = SourceKind("echo")
        result_type = str

        def fetch(self, key):
            return key

    source = KeyEcho()

    def worker(worker_id):
        try:
            for i in range(200):
                key = f"k{(worker_id + i) % 7}"
                assert cache.get(source, key) == key
        except Exception as e:  # collected and asserted on by the test
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert not errors
    assert len(cache) <= 7
