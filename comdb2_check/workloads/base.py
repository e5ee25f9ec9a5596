r"""
Workload definitions shared by the set, register and dirty-reads tests.

A workload bundles a client factory (one client per process slot), the
generators that drive it and the checker that judges the resulting history.
Builders are registered by name and receive the shared context.

    from comdb2_check.workloads.base import WorkloadContext, WorkloadRegistry

    context = WorkloadContext(sessions=sessions, runner=runner)
    workload = WorkloadRegistry.create("set", context)
"""

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from comdb2_check.config import get_run_config
from comdb2_check.connectors.base import BaseConnector
from comdb2_check.errors import SetupError
from comdb2_check.protocols import Checker, Client, Generator
from comdb2_check.session import SessionManager, SessionSlot
from comdb2_check.txn import TransactionRunner, Work
from comdb2_check.types import Failed, Function, Operation, OpType, Outcome, RunConfig

__all__ = [
    "Workload",
    "WorkloadContext",
    "WorkloadRegistry",
    "WorkloadBuilder",
    "completion",
]

logger = logging.getLogger(__name__)


@dataclass
class WorkloadContext:
    """Collaborators shared by every client of a test run.

    Attributes:
        sessions: Session manager for the run's connector.
        runner: Transaction runner over those sessions.
        rng: Random source for jitter and shuffles.
    """

    sessions: SessionManager
    runner: TransactionRunner
    rng: random.Random = field(default_factory=random.Random)

    @property
    def connector(self) -> BaseConnector:
        return self.sessions.connector

    def run(self, slot: SessionSlot, kind: Function, work: Work, **kwargs: Any) -> Outcome[Any] | Failed:
        """Run work on the slot's session, acquiring one if needed.

        A read that cannot even get a session has definitely failed; for other
        functions the error propagates.
        """
        try:
            session = slot.get()
        except Exception as e:
            if kind is Function.READ:
                logger.info("no session for read: %s", e)
                return Failed(str(e) or type(e).__name__)
            raise
        return self.runner.run(session, work, kind, **kwargs)

    def create_tables(self, slot: SessionSlot, statements: Sequence[str]) -> None:
        """Create tables when the connector manages its own schema."""
        if not self.connector.manages_schema:
            return

        def create(txn: Any) -> None:
            for statement in statements:
                txn.execute(statement)

        result = self.run(slot, Function.WRITE, create)
        if isinstance(result, Failed):
            msg = f"Could not create tables: {result.error}"
            raise SetupError(msg)


@dataclass
class Workload:
    """A runnable test: clients, generators and a checker.

    Attributes:
        name: Workload name.
        config: Run parameters.
        client: Factory for one process slot's client.
        generator: Main-phase invocations.
        checker: Judge of the final history.
        final_generator: Invocations run once after recovery, if any.
    """

    name: str
    config: RunConfig
    client: Callable[[], Client]
    generator: Generator
    checker: Checker
    final_generator: Generator | None = None


WorkloadBuilder: TypeAlias = Callable[[WorkloadContext, RunConfig], Workload]


class WorkloadRegistry:
    """Registry for workload builders."""

    _builders: dict[str, WorkloadBuilder] = {}

    @classmethod
    def register(cls, name: str) -> Any:
        """Decorator to register a workload builder."""

        def decorator(builder: WorkloadBuilder) -> WorkloadBuilder:
            cls._builders[name] = builder
            return builder

        return decorator

    @classmethod
    def get(cls, name: str) -> WorkloadBuilder | None:
        """Get workload builder by name."""
        return cls._builders.get(name)

    @classmethod
    def list(cls) -> list[str]:
        """List registered workload names."""
        return list(cls._builders.keys())

    @classmethod
    def create(cls, name: str, context: WorkloadContext, config: RunConfig | None = None) -> Workload:
        """Build a workload by name, with its preset config unless given one."""
        builder = cls.get(name)
        if builder is None:
            valid = ", ".join(cls.list()) or "none"
            msg = f"Unknown workload '{name}'. Registered: {valid}"
            raise ValueError(msg)
        return builder(context, config or get_run_config(name))


def completion(op: Operation, result: Outcome[Any] | Failed, **fields: Any) -> Operation:
    """Completion record for a runner result: ok with fields, or fail."""
    if isinstance(result, Failed):
        return op.complete(OpType.FAIL, error=result.error)
    return op.complete(OpType.OK, **fields)
