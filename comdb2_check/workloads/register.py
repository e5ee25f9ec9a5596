r"""
CAS-register workload.

Groups of processes work on independent registers. Half of each group writes
and compare-and-sets, the other half reads. Every write and cas stores a uid
drawn from a per-register counter, so each value a read returns can be traced
to exactly one successful operation.

Schema:
    register(id bigint primary key, val bigint, uid bigint)

Operation values are ``(id, v)``: ``v`` is the value to write, ``[old, new]``
for cas, and ``None`` in a read invocation.

    from comdb2_check.workloads.register import RegisterClient
"""

import logging
from functools import partial
from typing import Any

from comdb2_check.checkers.register import RegisterUidChecker
from comdb2_check.counters import AtomicCounter, CounterMap
from comdb2_check.errors import SetupError, UnexpectedRowCount
from comdb2_check.generators import Fn, Independent, Limit, Mix, Repeat, Reserve
from comdb2_check.session import SessionSlot
from comdb2_check.txn import Txn
from comdb2_check.types import Failed, Function, Operation, OpType, RunConfig
from comdb2_check.workloads.base import Workload, WorkloadContext, WorkloadRegistry, completion

__all__ = ["RegisterClient", "register_workload", "THREADS_PER_KEY"]

logger = logging.getLogger(__name__)

SCHEMA = [
    "create table if not exists register (id bigint primary key, val bigint, uid bigint)",
]

THREADS_PER_KEY = 10

# Values written and compared are drawn from 0..MAX_VALUE.
MAX_VALUE = 4


def _single_row(count: int) -> int:
    if count not in (0, 1):
        msg = f"Expected to affect at most one row, affected {count}"
        raise UnexpectedRowCount(msg)
    return count


class RegisterClient:
    """Reads, writes and compare-and-sets registers keyed by id."""

    def __init__(self, context: WorkloadContext, uids: CounterMap, setups: AtomicCounter | None = None) -> None:
        self._context = context
        self._uids = uids
        self._setups = setups or AtomicCounter(start=-1)
        self._slot: SessionSlot | None = None

    def setup(self, node: str) -> None:
        self._slot = SessionSlot(self._context.sessions, node)
        self._context.create_tables(self._slot, SCHEMA)
        # Replacement clients must not wipe registers mid-run.
        if self._setups.next() > 0:
            return
        result = self._context.run(
            self._slot,
            Function.WRITE,
            lambda txn: txn.execute("delete from register where 1 = 1"),
        )
        if isinstance(result, Failed):
            msg = f"Could not clear registers: {result.error}"
            raise SetupError(msg)

    def invoke(self, op: Operation) -> Operation:
        key, value = op.value
        if op.f is Function.READ:
            result = self._context.run(self._slot, op.f, lambda txn: self._read(txn, key))
            if isinstance(result, Failed):
                return completion(op, result)
            val, uid = result.value
            return op.complete(OpType.OK, value=(key, val), uid=uid)

        if op.f is Function.WRITE:
            work = partial(self._write, key=key, value=value)
        elif op.f is Function.CAS:
            work = partial(self._cas, key=key, value=value)
        else:
            msg = f"Register client cannot {op.f}"
            raise ValueError(msg)

        result = self._context.run(self._slot, op.f, work)
        if isinstance(result, Failed):
            return completion(op, result)
        count, uid = result.value
        if count == 1:
            return op.complete(OpType.OK, uid=uid)
        return op.complete(OpType.FAIL, error="no row matched", uid=uid)

    def _read(self, txn: Txn, key: int) -> tuple[Any, int | None]:
        rows = txn.query("select val, uid from register where id = :id", {"id": key})
        if not rows:
            return None, None
        return rows[0][0], rows[0][1]

    def _write(self, txn: Txn, key: int, value: int) -> tuple[int, int]:
        uid = self._uids.next(key)
        params = {"id": key, "val": value, "uid": uid}
        count = txn.execute("update register set val = :val, uid = :uid where id = :id", params)
        if count == 0:
            count = txn.execute("insert into register (id, val, uid) values (:id, :val, :uid)", params)
        return _single_row(count), uid

    def _cas(self, txn: Txn, key: int, value: Any) -> tuple[int, int]:
        old, new = value
        uid = self._uids.next(key)
        count = txn.execute(
            "update register set val = :new, uid = :uid where id = :id and val = :old",
            {"id": key, "old": old, "new": new, "uid": uid},
        )
        return _single_row(count), uid

    def teardown(self) -> None:
        if self._slot is not None:
            self._slot.close()


@WorkloadRegistry.register("register")
def register_workload(context: WorkloadContext, config: RunConfig) -> Workload:
    uids = CounterMap(start=-1)
    setups = AtomicCounter(start=-1)
    rng = context.rng
    threads_per_key = min(THREADS_PER_KEY, max(1, config.concurrency))
    writers = max(1, threads_per_key // 2)

    write = Fn(lambda: (Function.WRITE, rng.randint(0, MAX_VALUE)))
    cas = Fn(lambda: (Function.CAS, [rng.randint(0, MAX_VALUE), rng.randint(0, MAX_VALUE)]))

    def per_key(key: int) -> Limit:
        logger.debug("starting register %d", key)
        return Limit(
            Reserve(writers, Mix([write, cas, cas], rng=rng), Repeat(Function.READ)),
            config.ops_per_key,
        )

    return Workload(
        name="register",
        config=config,
        client=lambda: RegisterClient(context, uids, setups),
        generator=Independent(per_key, concurrency=config.concurrency, threads_per_key=threads_per_key),
        checker=RegisterUidChecker(),
    )
