r"""
Set-completeness checker.

Compares the final read of the set against the adds that were attempted:

- lost: acknowledged adds missing from the read
- unexpected: read values that were never added, or whose add definitely failed
- recovered: adds with an unknown outcome that turned out to have committed

    from comdb2_check.checkers.sets import SetChecker

    result = SetChecker().check(history)
    print(result.details["lost"])
"""

from typing import Any

from comdb2_check.checkers.base import CheckerRegistry, sorted_values
from comdb2_check.history import History
from comdb2_check.types import CheckResult, Function

__all__ = ["SetChecker"]


@CheckerRegistry.register("set")
class SetChecker:
    """Every acknowledged add appears in the final read; nothing else does."""

    @property
    def name(self) -> str:
        return "set"

    def check(self, history: History) -> CheckResult:
        attempts: set[Any] = set()
        acknowledged: set[Any] = set()
        failed: set[Any] = set()
        indeterminate: set[Any] = set()
        final_read: Any = None

        for op in history:
            if op.f is Function.ADD:
                if op.invoke:
                    attempts.add(op.value)
                elif op.ok:
                    acknowledged.add(op.value)
                elif op.failed:
                    failed.add(op.value)
                else:
                    indeterminate.add(op.value)
            elif op.f is Function.READ and op.ok:
                final_read = op.value

        if final_read is None:
            return CheckResult(self.name, None, {"error": "Set was never read"})

        read = set(final_read)
        lost = acknowledged - read
        unexpected = read - (attempts - failed)
        recovered = read & indeterminate

        return CheckResult(
            self.name,
            not lost and not unexpected,
            {
                "attempt_count": len(attempts),
                "acknowledged_count": len(acknowledged),
                "read_count": len(read),
                "ok_count": len(read & acknowledged),
                "lost": sorted_values(lost),
                "unexpected": sorted_values(unexpected),
                "recovered": sorted_values(recovered),
            },
        )
