import itertools
import os
import threading
from dataclasses import dataclass
from typing import List, Optional

import pytest

from timedcache.domain.exceptions import SourceFetchError
from timedcache.domain.interfaces.source import Source
from timedcache.domain.models.common import SourceKind
from timedcache.infrastructure.cache.timed_cache import TimedCache
from timedcache.infrastructure.config import settings


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass(frozen=True)
class Widget:
    key: str
    serial: int


class CountingSource(Source[Widget]):
    """Source returning a new serial per fetch and recording every call."""

    result_type = Widget

    def __init__(self, kind: str = "widget", gate: Optional[threading.Event] = None):
        self.kind = SourceKind(kind)
        self.calls: List[str] = []
        self.fail_keys = set()
        self.gate = gate
        self._serials = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def fetch(self, key: str) -> Widget:
        with self._lock:
            self.calls.append(key)
            serial = next(self._serials)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if key in self.fail_keys:
            raise SourceFetchError(self.kind, key, "boom")
        return Widget(key=key, serial=serial)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source() -> CountingSource:
    return CountingSource()


@pytest.fixture
def cache(clock: FakeClock) -> TimedCache:
    return TimedCache(ttl_seconds=5, clock=clock)


@pytest.fixture(autouse=True)
def isolated_configuration(monkeypatch, tmp_path):
    """Keep tests away from the developer's ~/.timedcache and .env files."""
    monkeypatch.setattr(settings, "DEFAULT_CONFIG_FILE", tmp_path / "absent.yaml")
    monkeypatch.setattr(settings, "find_dotenv_path", lambda: None)
    for name in list(os.environ):
        if name.startswith(settings.ENV_PREFIX):
            monkeypatch.delenv(name)
    settings.reset_configuration()
    yield
    settings.reset_configuration()


@pytest.fixture
def source_factory():
    """Builds extra CountingSources, e.g. a second kind or a gated one."""
    return CountingSource
