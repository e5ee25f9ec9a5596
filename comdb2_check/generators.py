r"""
Operation generators.

Deliberately small: enough to reproduce the published workloads (sequential
adds, read/write mixes, independent registers). Every generator is safe to
share between process threads.

    from comdb2_check.generators import Counter, Mix, Repeat
    from comdb2_check.types import Function

    gen = Mix([Repeat(Function.READ), Counter(Function.WRITE)])
    gen.next_op(0)   # (Function.READ, None) or (Function.WRITE, 0)
"""

import random
import threading
from collections.abc import Callable, Sequence
from typing import Any, TypeAlias

from comdb2_check.protocols import Generator
from comdb2_check.types import Function

__all__ = [
    "Counter",
    "Repeat",
    "Once",
    "Fn",
    "Mix",
    "Reserve",
    "Limit",
    "Independent",
]

Op: TypeAlias = tuple[Function, Any]


class Counter:
    """Invocations whose values count up: f 0, f 1, f 2, ..."""

    def __init__(self, f: Function, *, start: int = 0) -> None:
        self._f = f
        self._next = start
        self._lock = threading.Lock()

    def next_op(self, process: int = 0) -> Op | None:
        with self._lock:
            value = self._next
            self._next += 1
        return self._f, value


class Repeat:
    """The same invocation forever."""

    def __init__(self, f: Function, value: Any = None) -> None:
        self._op = (f, value)

    def next_op(self, process: int = 0) -> Op | None:
        return self._op


class Once:
    """A single invocation, then nothing."""

    def __init__(self, f: Function, value: Any = None) -> None:
        self._op: Op | None = (f, value)
        self._lock = threading.Lock()

    def next_op(self, process: int = 0) -> Op | None:
        with self._lock:
            op, self._op = self._op, None
        return op


class Fn:
    """Invocations produced by a callable."""

    def __init__(self, fn: Callable[[], Op]) -> None:
        self._fn = fn

    def next_op(self, process: int = 0) -> Op | None:
        return self._fn()


class Mix:
    """Picks one of several generators uniformly at random for every op."""

    def __init__(self, generators: Sequence[Generator], *, rng: random.Random | None = None) -> None:
        if not generators:
            msg = "Mix needs at least one generator"
            raise ValueError(msg)
        self._generators = list(generators)
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    def next_op(self, process: int = 0) -> Op | None:
        with self._lock:
            gen = self._rng.choice(self._generators)
        return gen.next_op(process)


class Reserve:
    """The first ``count`` processes use one generator, the rest another."""

    def __init__(self, count: int, reserved: Generator, rest: Generator) -> None:
        self._count = count
        self._reserved = reserved
        self._rest = rest

    def next_op(self, process: int = 0) -> Op | None:
        gen = self._reserved if process < self._count else self._rest
        return gen.next_op(process)


class Limit:
    """At most ``limit`` invocations from a generator."""

    def __init__(self, generator: Generator, limit: int) -> None:
        self._generator = generator
        self._remaining = limit
        self._lock = threading.Lock()

    def next_op(self, process: int = 0) -> Op | None:
        with self._lock:
            if self._remaining <= 0:
                return None
            self._remaining -= 1
        return self._generator.next_op(process)


class Independent:
    """Runs groups of processes against independent keys.

    Processes are split into groups of ``threads_per_key``. Each group works
    on one key at a time with a fresh generator from ``make(key)``; when that
    generator is exhausted the group moves on to the next unused key. Values
    are emitted as ``(key, value)``.
    """

    def __init__(
        self,
        make: Callable[[int], Generator],
        *,
        concurrency: int,
        threads_per_key: int = 10,
    ) -> None:
        self._make = make
        self._concurrency = max(1, concurrency)
        self._threads_per_key = max(1, min(threads_per_key, self._concurrency))
        self._groups: dict[int, tuple[int, Generator]] = {}
        self._next_key = 0
        self._lock = threading.Lock()

    def _fresh(self) -> tuple[int, Generator]:
        key = self._next_key
        self._next_key += 1
        return key, self._make(key)

    def next_op(self, process: int = 0) -> Op | None:
        slot = process % self._concurrency
        group, member = divmod(slot, self._threads_per_key)
        with self._lock:
            if group not in self._groups:
                self._groups[group] = self._fresh()
            key, gen = self._groups[group]
            op = gen.next_op(member)
            if op is None:
                key, gen = self._groups[group] = self._fresh()
                op = gen.next_op(member)
                if op is None:
                    return None
        f, value = op
        return f, (key, value)
