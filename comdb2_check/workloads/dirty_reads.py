r"""
Dirty-reads workload.

A fixed set of rows is always written together: every write reads all rows
in random order, then sets each of them to the same new value inside one
transaction. Reads that observe the value of a write that definitely failed
have seen uncommitted state.

Schema:
    dirty(id bigint primary key, x bigint)

    from comdb2_check.workloads.dirty_reads import DirtyReadsClient
"""

import logging
import random
import time
from typing import Any

from comdb2_check.checkers.dirty_reads import DirtyReadsChecker
from comdb2_check.errors import SetupError
from comdb2_check.generators import Counter, Mix, Repeat
from comdb2_check.session import SessionSlot
from comdb2_check.txn import Txn
from comdb2_check.types import ErrorClass, Failed, Function, Operation, RunConfig
from comdb2_check.workloads.base import Workload, WorkloadContext, WorkloadRegistry, completion

__all__ = ["DirtyReadsClient", "dirty_reads_workload", "SENTINEL"]

logger = logging.getLogger(__name__)

SCHEMA = [
    "create table if not exists dirty (id bigint primary key, x bigint)",
]

# Initial value of every row; never reported by reads.
SENTINEL = -1

# Upper bound of the setup jitter, in milliseconds.
MAX_JITTER_MS = 10

# Inserts of one row before setup gives up on an unreachable node.
SETUP_ATTEMPTS = 5


class DirtyReadsClient:
    """Writes one value to every row at once and reads the visible values."""

    def __init__(self, context: WorkloadContext, rows: int, rng: random.Random | None = None) -> None:
        self._context = context
        self._rows = rows
        self._rng = rng or context.rng
        self._slot: SessionSlot | None = None

    def setup(self, node: str) -> None:
        self._slot = SessionSlot(self._context.sessions, node)
        self._context.create_tables(self._slot, SCHEMA)
        for row in range(self._rows):
            self._insert_row(row)

    def _insert_row(self, row: int) -> None:
        for _ in range(SETUP_ATTEMPTS):
            result = self._context.run(self._slot, Function.WRITE, lambda txn: self._insert(txn, row))
            if not isinstance(result, Failed):
                return
            if result.error_class is ErrorClass.LOGICAL_FAILURE:
                # Another slot already created the row.
                logger.info("row %d not inserted: %s", row, result.error)
                return
            if result.error_class is not ErrorClass.CONNECT_FAILURE_DURING_PREP:
                break
            logger.info("retrying insert of row %d: %s", row, result.error)
        msg = f"Could not insert dirty-reads row {row}: {result.error}"
        raise SetupError(msg)

    def _insert(self, txn: Txn, row: int) -> int:
        time.sleep(self._rng.randint(0, MAX_JITTER_MS) / 1000)
        return txn.execute("insert into dirty (id, x) values (:id, :x)", {"id": row, "x": SENTINEL})

    def invoke(self, op: Operation) -> Operation:
        if op.f is Function.WRITE:
            result = self._context.run(
                self._slot,
                op.f,
                lambda txn: self._write(txn, op.value),
                definite_before_commit=True,
            )
            return completion(op, result)
        if op.f is Function.READ:
            result = self._context.run(self._slot, op.f, self._read)
            return completion(op, result, value=getattr(result, "value", None))
        msg = f"Dirty-reads client cannot {op.f}"
        raise ValueError(msg)

    def _write(self, txn: Txn, value: Any) -> None:
        order = list(range(self._rows))
        self._rng.shuffle(order)
        for row in order:
            txn.query("select x from dirty where id = :id", {"id": row})
        for row in order:
            txn.execute("update dirty set x = :x where id = :id", {"id": row, "x": value})

    def _read(self, txn: Txn) -> list[Any]:
        rows = txn.query("select x from dirty where x != :sentinel", {"sentinel": SENTINEL})
        return sorted({row[0] for row in rows})

    def teardown(self) -> None:
        if self._slot is not None:
            self._slot.close()


@WorkloadRegistry.register("dirty-reads")
def dirty_reads_workload(context: WorkloadContext, config: RunConfig) -> Workload:
    return Workload(
        name="dirty-reads",
        config=config,
        client=lambda: DirtyReadsClient(context, config.rows),
        generator=Mix([Repeat(Function.READ), Counter(Function.WRITE)], rng=context.rng),
        checker=DirtyReadsChecker(),
    )
