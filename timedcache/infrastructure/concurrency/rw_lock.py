"""Reader/writer lock with an upgradeable mode.

Three modes:

* **read** - shared; any number of threads at once.
* **upgradeable** - shared with readers, but only one thread may hold it. Its
  holder can escalate to write without releasing first, so a read-then-write
  decision cannot race with another thread making the same decision.
* **write** - exclusive.

Locks are recursive per thread: the write holder may re-enter any mode, the
upgradeable holder may take read or write, a reader may take read again.
Escalating from plain read to upgradeable or write raises
``LockRecursionError`` instead of deadlocking.

Pending writers block new readers and new upgraders so a steady stream of hits
cannot starve an eviction.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from timedcache.domain.exceptions import LockRecursionError


class UpgradeableRWLock:
    """Upgradeable, recursive reader/writer lock built on ``threading.Condition``."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers: Dict[int, int] = {}  # thread ident -> recursion depth
        self._upgrader: Optional[int] = None
        self._upgrade_depth = 0
        self._writer: Optional[int] = None
        self._write_depth = 0
        self._pending_writers = 0

    # --- Read ---

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if me in self._readers or self._writer == me or self._upgrader == me:
                # Already inside the lock; waiting on pending writers here would deadlock.
                self._readers[me] = self._readers.get(me, 0) + 1
                return
            while self._writer is not None or self._pending_writers:
                self._cond.wait()
            self._readers[me] = 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            depth = self._readers.get(me)
            if not depth:
                raise RuntimeError("release of read lock not held by this thread")
            if depth == 1:
                del self._readers[me]
                self._cond.notify_all()
            else:
                self._readers[me] = depth - 1

    # --- Upgradeable ---

    def acquire_upgradeable(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._upgrader == me:
                self._upgrade_depth += 1
                return
            if self._writer == me:
                # Writer already excludes everyone; claiming the slot cannot block.
                self._upgrader = me
                self._upgrade_depth = 1
                return
            if me in self._readers:
                raise LockRecursionError("cannot take upgradeable lock while holding only a read lock")
            while self._upgrader is not None or self._writer is not None or self._pending_writers:
                self._cond.wait()
            self._upgrader = me
            self._upgrade_depth = 1

    def release_upgradeable(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._upgrader != me:
                raise RuntimeError("release of upgradeable lock not held by this thread")
            self._upgrade_depth -= 1
            if self._upgrade_depth == 0:
                self._upgrader = None
                self._cond.notify_all()

    # --- Write ---

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth += 1
                return
            if me in self._readers and self._upgrader != me:
                raise LockRecursionError("cannot take write lock while holding only a read lock")
            self._pending_writers += 1
            try:
                while not self._write_available(me):
                    self._cond.wait()
            finally:
                self._pending_writers -= 1
            self._writer = me
            self._write_depth = 1

    def release_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer != me:
                raise RuntimeError("release of write lock not held by this thread")
            self._write_depth -= 1
            if self._write_depth == 0:
                self._writer = None
                self._cond.notify_all()

    def _write_available(self, me: int) -> bool:
        """Caller must hold ``_cond``."""
        if self._writer is not None:
            return False
        if self._upgrader is not None and self._upgrader != me:
            return False
        return all(ident == me for ident in self._readers)

    # --- Context managers ---

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def upgradeable_locked(self) -> Iterator[None]:
        self.acquire_upgradeable()
        try:
            yield
        finally:
            self.release_upgradeable()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    # --- Introspection ---

    @property
    def reader_count(self) -> int:
        with self._cond:
            return len(self._readers)

    @property
    def is_write_locked(self) -> bool:
        with self._cond:
            return self._writer is not None

    @property
    def is_upgradeable_locked(self) -> bool:
        with self._cond:
            return self._upgrader is not None

    def __repr__(self) -> str:
        return (
            f"<UpgradeableRWLock readers={self.reader_count} "
            f"upgradeable={self.is_upgradeable_locked} write={self.is_write_locked}>"
        )
