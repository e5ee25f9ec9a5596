r"""
Shared atomic counters.

The set workload draws row keys from one counter shared by every process;
the register workload draws uids from one counter per register key. Both are
created once per test and handed to the clients that need them.

    from comdb2_check.counters import AtomicCounter, CounterMap

    keys = AtomicCounter()
    keys.next()       # 1
    uids = CounterMap(start=-1)
    uids.next(7)      # 0
"""

import threading
from collections.abc import Hashable

__all__ = ["AtomicCounter", "CounterMap"]


class AtomicCounter:
    """Thread-safe, strictly increasing integer counter."""

    def __init__(self, start: int = 0) -> None:
        self._value = start
        self._lock = threading.Lock()

    def next(self) -> int:
        """Increment and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        """Last value handed out."""
        with self._lock:
            return self._value


class CounterMap:
    """Independent atomic counters, created lazily per key."""

    def __init__(self, start: int = 0) -> None:
        self._start = start
        self._counters: dict[Hashable, AtomicCounter] = {}
        self._lock = threading.Lock()

    def counter(self, key: Hashable) -> AtomicCounter:
        with self._lock:
            counter = self._counters.get(key)
            if counter is None:
                counter = self._counters[key] = AtomicCounter(self._start)
            return counter

    def next(self, key: Hashable) -> int:
        return self.counter(key).next()
