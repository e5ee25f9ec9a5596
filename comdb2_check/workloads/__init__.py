r"""
Workload clients and their registered builders.

Importing this package registers the set, register and dirty-reads workloads.

    from comdb2_check.workloads import WorkloadRegistry

    WorkloadRegistry.list()   # ['set', 'register', 'dirty-reads']
"""

from comdb2_check.workloads.base import Workload, WorkloadContext, WorkloadRegistry, completion
from comdb2_check.workloads.dirty_reads import DirtyReadsClient
from comdb2_check.workloads.register import RegisterClient
from comdb2_check.workloads.sets import SetClient

__all__ = [
    "DirtyReadsClient",
    "RegisterClient",
    "SetClient",
    "Workload",
    "WorkloadContext",
    "WorkloadRegistry",
    "completion",
]
