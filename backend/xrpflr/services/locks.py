"""Process-wide coordination for owner state and in-flight unstakes."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLocks:
    """One re-entrant lock per key, created on first use.

    Every mutation of an owner's positions or reward entry runs inside
    `hold(owner)` so reconciler rebuilds, claim settlement, unstake removal and
    the updater never interleave for the same owner.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield


class InFlightRegistry:
    """Non-blocking markers: at most one holder per key at a time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: set[str] = set()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._active:
                return False
            self._active.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._active.discard(key)

    def is_held(self, key: str) -> bool:
        with self._lock:
            return key in self._active


owner_locks = KeyedLocks()
inflight_unstakes = InFlightRegistry()
