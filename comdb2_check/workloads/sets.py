r"""
Set workload.

Processes add unique integers to a table; after the nemesis heals, one final
read returns the whole set. Every acknowledged add must be in it.

Schema:
    jepsen(id bigint primary key, value bigint)

    from comdb2_check.workloads.sets import SetClient
"""

from typing import Any

from comdb2_check.checkers.sets import SetChecker
from comdb2_check.counters import AtomicCounter
from comdb2_check.generators import Counter, Once
from comdb2_check.session import SessionSlot
from comdb2_check.txn import Txn
from comdb2_check.types import Function, Operation, RunConfig
from comdb2_check.workloads.base import Workload, WorkloadContext, WorkloadRegistry, completion

__all__ = ["SetClient", "set_workload"]

SCHEMA = [
    "create table if not exists jepsen (id bigint primary key, value bigint)",
]


class SetClient:
    """Adds values under globally unique keys and reads them all back."""

    def __init__(self, context: WorkloadContext, keys: AtomicCounter) -> None:
        self._context = context
        self._keys = keys
        self._slot: SessionSlot | None = None

    def setup(self, node: str) -> None:
        self._slot = SessionSlot(self._context.sessions, node)
        self._context.create_tables(self._slot, SCHEMA)

    def invoke(self, op: Operation) -> Operation:
        if op.f is Function.ADD:
            result = self._context.run(self._slot, op.f, lambda txn: self._add(txn, op.value))
            return completion(op, result)
        if op.f is Function.READ:
            result = self._context.run(self._slot, op.f, self._read)
            return completion(op, result, value=getattr(result, "value", None))
        msg = f"Set client cannot {op.f}"
        raise ValueError(msg)

    def _add(self, txn: Txn, value: Any) -> int:
        # A retried attempt takes a new key.
        return txn.execute(
            "insert into jepsen (id, value) values (:id, :value)",
            {"id": self._keys.next(), "value": value},
        )

    def _read(self, txn: Txn) -> list[Any]:
        return sorted({row[0] for row in txn.query("select value from jepsen")})

    def teardown(self) -> None:
        if self._slot is not None:
            self._slot.close()


@WorkloadRegistry.register("set")
def set_workload(context: WorkloadContext, config: RunConfig) -> Workload:
    keys = AtomicCounter()
    return Workload(
        name="set",
        config=config,
        client=lambda: SetClient(context, keys),
        generator=Counter(Function.ADD),
        final_generator=Once(Function.READ),
        checker=SetChecker(),
    )
