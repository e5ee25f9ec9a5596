r"""
Register uid checker.

Every successful write or cas carries the uid it stored. Two successful
operations on the same key with the same uid would make the value they wrote
ambiguous to a linearizability checker, so that is a violation.
"""

from collections import defaultdict
from typing import Any

from comdb2_check.checkers.base import CheckerRegistry
from comdb2_check.history import History
from comdb2_check.types import CheckResult, Function

__all__ = ["RegisterUidChecker"]


@CheckerRegistry.register("register-uids")
class RegisterUidChecker:
    """Successful writes and cas operations on a key have distinct uids."""

    @property
    def name(self) -> str:
        return "register-uids"

    def check(self, history: History) -> CheckResult:
        seen: dict[Any, dict[int, int]] = defaultdict(dict)
        duplicates: list[dict[str, Any]] = []
        missing = 0

        for op in history:
            if not op.ok or op.f not in (Function.WRITE, Function.CAS):
                continue
            if op.uid is None:
                missing += 1
                continue
            key = op.value[0]
            if op.uid in seen[key]:
                duplicates.append({"key": key, "uid": op.uid, "processes": [seen[key][op.uid], op.process]})
            else:
                seen[key][op.uid] = op.process

        return CheckResult(
            self.name,
            not duplicates and not missing,
            {
                "keys": len(seen),
                "duplicates": duplicates,
                "missing_uids": missing,
            },
        )
