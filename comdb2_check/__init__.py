r"""
comdb2-check: fault-injection consistency tests for Comdb2 clusters.

Runs set, CAS-register and dirty-reads workloads against a cluster while a
nemesis injects faults, records every operation in a history and checks it.

    from comdb2_check import History, get_run_config
    from comdb2_check.checkers import SetChecker

    result = SetChecker().check(History.load_json("histories/set.json"))
"""

from comdb2_check.config import RUN_CONFIGS, cluster_nodes, get_run_config
from comdb2_check.history import History
from comdb2_check.types import CheckResult, ErrorClass, Function, Operation, OpType, RunConfig

__all__ = [
    "CheckResult",
    "ErrorClass",
    "Function",
    "History",
    "OpType",
    "Operation",
    "RUN_CONFIGS",
    "RunConfig",
    "cluster_nodes",
    "get_run_config",
]

__version__ = "0.1.0"
