r"""
Test orchestration.

Runs workload clients concurrently, schedules the nemesis and checks the
resulting history.

    from comdb2_check.runner import TestOrchestrator

    orchestrator = TestOrchestrator()
    result = orchestrator.run(workload, sessions)
"""

from comdb2_check.runner.orchestrator import OrchestratorConfig, TestOrchestrator, TestResult

__all__ = [
    "OrchestratorConfig",
    "TestOrchestrator",
    "TestResult",
]
