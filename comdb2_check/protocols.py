r"""
Protocol definitions for clients, checkers, generators and nemeses.

Workload clients are plain classes satisfying Client; the orchestrator only
talks to them through this interface.

    from comdb2_check.protocols import Client, Checker

    class MyClient:
        def setup(self, node: str) -> None: ...
        def invoke(self, op: Operation) -> Operation: ...
        def teardown(self) -> None: ...

    assert isinstance(MyClient(), Client)
"""

from typing import Any, Protocol, runtime_checkable

from comdb2_check.history import History
from comdb2_check.types import CheckResult, Function, Operation

__all__ = [
    "Client",
    "Checker",
    "Generator",
    "Nemesis",
]


@runtime_checkable
class Client(Protocol):
    """A workload client bound to one process slot."""

    def setup(self, node: str) -> None:
        """Connect to a node and prepare tables."""
        ...

    def invoke(self, op: Operation) -> Operation:
        """Apply an invocation and return its ok/fail completion.

        Raising means the outcome is unknown; the caller records info.
        """
        ...

    def teardown(self) -> None:
        """Release the client's session."""
        ...


@runtime_checkable
class Checker(Protocol):
    """Analyzer over a finished history."""

    @property
    def name(self) -> str:
        ...

    def check(self, history: History) -> CheckResult:
        ...


@runtime_checkable
class Generator(Protocol):
    """Source of invocations. Must be safe to call from several threads."""

    def next_op(self, process: int = 0) -> tuple[Function, Any] | None:
        """Next (function, value) pair for a process, or None when exhausted."""
        ...


@runtime_checkable
class Nemesis(Protocol):
    """Fault injector. Scheduling is the orchestrator's job."""

    def start(self) -> None:
        """Begin a fault (partition, process kill, ...)."""
        ...

    def stop(self) -> None:
        """Heal every fault."""
        ...
