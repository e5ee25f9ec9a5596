r"""
Shared pytest fixtures for comdb2-check tests.

FakeConnector stands in for a cluster: statements return scripted results or
raise scripted errors, and every handle records what ran on it.
"""

import threading
import time
from typing import Any

import pytest

from comdb2_check.connectors.base import BaseConnector, Params
from comdb2_check.history import History
from comdb2_check.session import SessionManager
from comdb2_check.txn import TransactionRunner
from comdb2_check.types import Function, Operation, OpType


class IntegrityError(Exception):
    """Named like the DB-API integrity error drivers raise."""


class FakeHandle:
    def __init__(self, node: str) -> None:
        self.node = node
        self.closed = False
        self.statements: list[str] = []
        self.commits = 0
        self.rollbacks = 0

    def close(self) -> None:
        self.closed = True

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


class FakeConnector(BaseConnector):
    """Connector whose statements follow a script."""

    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []
        self.open_delay = 0.0
        self.open_error: Exception | None = None
        self.commit_errors: list[Exception] = []
        self._script: dict[str, list[Any]] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "Fake"

    def script(self, sql: str, *results: Any) -> None:
        """Queue results (or exceptions, or callables) for a statement."""
        with self._lock:
            self._script.setdefault(sql, []).extend(results)

    def open(self, node: str) -> FakeHandle:
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.open_error is not None:
            raise self.open_error
        handle = FakeHandle(node)
        self.handles.append(handle)
        return handle

    def _next(self, handle: FakeHandle, sql: str, default: Any) -> Any:
        handle.statements.append(sql)
        with self._lock:
            queue = self._script.get(sql)
            result = queue.pop(0) if queue else default
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            return result()
        return result

    def query(self, handle: Any, sql: str, params: Params | None = None) -> list[tuple[Any, ...]]:
        return self._next(handle, sql, [])

    def execute(self, handle: Any, sql: str, params: Params | None = None) -> int:
        return self._next(handle, sql, 1)

    def commit(self, handle: Any) -> None:
        if self.commit_errors:
            raise self.commit_errors.pop(0)
        handle.commit()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def sessions(connector: FakeConnector) -> SessionManager:
    """Session manager with short delays."""
    return SessionManager(connector, connect_timeout=1.0, not_ready_delay=0.0)


@pytest.fixture
def runner(sessions: SessionManager) -> TransactionRunner:
    return TransactionRunner(sessions, timeout=2.0, prep_failure_delay=0.0)


def invoke(f: Function, value: Any = None, process: int = 0) -> Operation:
    return Operation(OpType.INVOKE, f, value, process)


def make_history(*records: tuple) -> History:
    """History from (type, f, value) or (type, f, value, process) tuples."""
    ops = []
    for record in records:
        type_, f, value, *rest = record
        ops.append(Operation(OpType(type_), Function(f), value, rest[0] if rest else 0))
    return History(ops)
