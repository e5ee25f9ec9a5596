r"""
Core types for Comdb2 consistency tests.

    from comdb2_check.types import Function, Operation, OpType

    op = Operation(type=OpType.INVOKE, f=Function.ADD, value=3, process=0)
    done = op.complete(OpType.OK)
    assert done.ok and op.type is OpType.INVOKE
"""

from dataclasses import dataclass, field, replace
from enum import IntEnum, StrEnum, auto
from typing import Any, Generic, TypeAlias, TypeVar

__all__ = [
    "OpType",
    "Function",
    "ErrorClass",
    "SessionState",
    "Operation",
    "Retry",
    "Outcome",
    "ConnectFailure",
    "Failed",
    "Attempt",
    "RunConfig",
    "CheckResult",
]


class OpType(StrEnum):
    """History record type."""

    INVOKE = "invoke"
    OK = "ok"
    FAIL = "fail"
    INFO = "info"


class Function(StrEnum):
    """Operation function tag."""

    ADD = "add"
    READ = "read"
    WRITE = "write"
    CAS = "cas"


class ErrorClass(IntEnum):
    """Classification of a raw database error."""

    RETRYABLE = auto()
    LOGICAL_FAILURE = auto()
    CONNECT_FAILURE_DURING_PREP = auto()
    FATAL = auto()


class SessionState(IntEnum):
    """Session lifecycle states."""

    CLOSED = auto()
    OPENING = auto()
    OPEN = auto()
    FAULTED = auto()


_UNSET: Any = object()


@dataclass(frozen=True, slots=True)
class Operation:
    """A single history record.

    Attributes:
        type: invoke, ok, fail or info.
        f: Function tag.
        value: Input value on invocation, observed value on completion.
        process: Logical process that issued the operation.
        time: Nanoseconds since the start of the test.
        error: Error description for fail/info completions.
        uid: Write identifier for register writes and reads.
    """

    type: OpType
    f: Function
    value: Any = None
    process: int = 0
    time: int = 0
    error: str | None = None
    uid: int | None = None

    @property
    def ok(self) -> bool:
        return self.type is OpType.OK

    @property
    def failed(self) -> bool:
        return self.type is OpType.FAIL

    @property
    def info(self) -> bool:
        return self.type is OpType.INFO

    @property
    def invoke(self) -> bool:
        return self.type is OpType.INVOKE

    def complete(
        self,
        type: OpType,
        *,
        value: Any = _UNSET,
        error: str | None = None,
        uid: int | None = None,
    ) -> "Operation":
        """Return the completion record for this invocation.

        The invocation itself is left untouched; value defaults to the
        invocation's value.
        """
        if type is OpType.INVOKE:
            msg = "A completion cannot have type invoke"
            raise ValueError(msg)
        return replace(
            self,
            type=type,
            value=self.value if value is _UNSET else value,
            error=error,
            uid=uid if uid is not None else self.uid,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible record; tuples become lists."""
        record: dict[str, Any] = {
            "type": str(self.type),
            "f": str(self.f),
            "value": _plain(self.value),
            "process": self.process,
            "time": self.time,
        }
        if self.error is not None:
            record["error"] = self.error
        if self.uid is not None:
            record["uid"] = self.uid
        return record

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> "Operation":
        return cls(
            type=OpType(record["type"]),
            f=Function(record["f"]),
            value=record.get("value"),
            process=record.get("process", 0),
            time=record.get("time", 0),
            error=record.get("error"),
            uid=record.get("uid"),
        )


def _plain(value: Any) -> Any:
    if isinstance(value, (tuple, list)):
        return [_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(v) for v in value)
    return value


# =============================================================================
# Transaction attempts
# =============================================================================


@dataclass(frozen=True, slots=True)
class Retry:
    """The attempt aborted with a retryable conflict."""

    reason: str


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """The attempt committed and produced a value."""

    value: T


@dataclass(frozen=True, slots=True)
class ConnectFailure:
    """Session preparation could not reach the database; nothing executed."""

    message: str


@dataclass(frozen=True, slots=True)
class Failed:
    """The operation definitely did not take effect."""

    error: str
    # Why it failed, when the runner knows; not part of equality.
    error_class: ErrorClass | None = field(default=None, compare=False)


Attempt: TypeAlias = Retry | Outcome[Any] | ConnectFailure


# =============================================================================
# Configuration and results
# =============================================================================


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Run parameters for a workload.

    Attributes:
        name: Workload name.
        concurrency: Number of concurrent process slots.
        time_limit: Seconds to generate operations for.
        op_delay: Mean delay between operations of one process, in seconds.
        final_delay: Seconds to wait for recovery before the final read.
        nemesis_start: Seconds between nemesis start events.
        nemesis_stop: Seconds a fault is held before it is healed.
        rows: Rows per dirty-reads table.
        ops_per_key: Operations issued against each register key.
    """

    name: str
    concurrency: int = 5
    time_limit: float = 120.0
    op_delay: float = 0.0
    final_delay: float = 30.0
    nemesis_start: float = 30.0
    nemesis_stop: float = 10.0
    rows: int = 4
    ops_per_key: int = 200


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Verdict of a history checker.

    ``valid`` is None when the history holds too little to decide.
    """

    checker: str
    valid: bool | None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.valid is True
