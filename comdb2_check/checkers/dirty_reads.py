r"""
Dirty-reads checker.

Looks for a failed write whose value became visible to some read. A write is
only recorded as failed when its transaction is known not to have committed,
so any read observing that value read uncommitted state.

Reads observing more than one distinct value saw an inconsistent snapshot of
rows that are always written together. They are reported but do not by
themselves invalidate the run.

    from comdb2_check.checkers.dirty_reads import DirtyReadsChecker

    result = DirtyReadsChecker().check(history)
    assert result.valid or result.details["dirty_reads"]
"""

from typing import Any

from comdb2_check.checkers.base import CheckerRegistry
from comdb2_check.history import History
from comdb2_check.types import CheckResult, Function

__all__ = ["DirtyReadsChecker", "PLACEHOLDER_FAILED_WRITE"]

# Always counted as a failed write so the set is never empty.
PLACEHOLDER_FAILED_WRITE = -12


@CheckerRegistry.register("dirty-reads")
class DirtyReadsChecker:
    """No read may observe the value of a failed write."""

    @property
    def name(self) -> str:
        return "dirty-reads"

    def check(self, history: History) -> CheckResult:
        failed_writes: set[Any] = {PLACEHOLDER_FAILED_WRITE}
        reads: list[list[Any]] = []

        for op in history:
            if op.f is Function.WRITE and op.failed:
                failed_writes.add(op.value)
            elif op.f is Function.READ and op.ok:
                reads.append(list(op.value or []))

        inconsistent_reads = [r for r in reads if len(set(r)) > 1]
        filthy_reads = [r for r in reads if any(v in failed_writes for v in r)]

        return CheckResult(
            self.name,
            not filthy_reads,
            {
                "inconsistent_reads": inconsistent_reads,
                "dirty_reads": filthy_reads,
                "read_count": len(reads),
                "failed_write_count": len(failed_writes) - 1,
            },
        )
