r"""
History checkers.

Pure analyzers over a finished history; none of them talks to the cluster.

    from comdb2_check.checkers import CheckerRegistry, DirtyReadsChecker
"""

from comdb2_check.checkers.base import CheckerRegistry
from comdb2_check.checkers.compose import ComposeChecker
from comdb2_check.checkers.dirty_reads import PLACEHOLDER_FAILED_WRITE, DirtyReadsChecker
from comdb2_check.checkers.register import RegisterUidChecker
from comdb2_check.checkers.sets import SetChecker

__all__ = [
    "CheckerRegistry",
    "ComposeChecker",
    "DirtyReadsChecker",
    "PLACEHOLDER_FAILED_WRITE",
    "RegisterUidChecker",
    "SetChecker",
]
