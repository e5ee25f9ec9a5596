r"""
Composition of several checkers over one history.

    from comdb2_check.checkers.compose import ComposeChecker

    checker = ComposeChecker({"dirty-reads": DirtyReadsChecker(), "uids": RegisterUidChecker()})
"""

from collections.abc import Mapping

from comdb2_check.history import History
from comdb2_check.protocols import Checker
from comdb2_check.types import CheckResult

__all__ = ["ComposeChecker", "merge_valid"]


def merge_valid(values: list[bool | None]) -> bool | None:
    """False if any is False, None if any is unknown, else True."""
    if any(v is False for v in values):
        return False
    if any(v is None for v in values):
        return None
    return True


class ComposeChecker:
    """Runs named checkers and combines their verdicts."""

    def __init__(self, checkers: Mapping[str, Checker], *, name: str = "compose") -> None:
        self._checkers = dict(checkers)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def check(self, history: History) -> CheckResult:
        results = {key: checker.check(history) for key, checker in self._checkers.items()}
        return CheckResult(
            self.name,
            merge_valid([r.valid for r in results.values()]),
            {key: {"valid": r.valid, **r.details} for key, r in results.items()},
        )
