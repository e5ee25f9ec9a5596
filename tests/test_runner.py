r"""
Tests for comdb2_check.runner module.
"""

import threading

import pytest

from comdb2_check.checkers import SetChecker
from comdb2_check.generators import Counter, Limit, Once
from comdb2_check.nemesis import RecordingNemesis
from comdb2_check.runner import OrchestratorConfig, TestOrchestrator
from comdb2_check.types import Function, Operation, OpType, RunConfig
from comdb2_check.workloads import Workload


class MemoryClient:
    """Adds to an in-memory set; crashes on the values it is told to."""

    def __init__(self, store: set, nodes: list, crash_on: frozenset = frozenset()) -> None:
        self._store = store
        self._nodes = nodes
        self._crash_on = crash_on
        self._lock = threading.Lock()
        self.torn_down = False

    def setup(self, node: str) -> None:
        self._nodes.append(node)

    def invoke(self, op: Operation) -> Operation:
        if op.f is Function.READ:
            return op.complete(OpType.OK, value=sorted(self._store))
        if op.value in self._crash_on:
            raise RuntimeError(f"lost connection adding {op.value}")
        with self._lock:
            self._store.add(op.value)
        return op.complete(OpType.OK)

    def teardown(self) -> None:
        self.torn_down = True


def make_workload(config: RunConfig, *, crash_on=frozenset(), limit=20):
    store: set = set()
    nodes: list = []
    clients: list = []

    def client():
        c = MemoryClient(store, nodes, crash_on)
        clients.append(c)
        return c

    workload = Workload(
        name="memory-set",
        config=config,
        client=client,
        generator=Limit(Counter(Function.ADD), limit),
        final_generator=Once(Function.READ),
        checker=SetChecker(),
    )
    return workload, nodes, clients


@pytest.fixture
def quick_config() -> RunConfig:
    return RunConfig(name="memory-set", concurrency=2, time_limit=5.0, final_delay=0.0)


class TestOrchestratorConfig:
    def test_default_config(self):
        config = OrchestratorConfig()
        assert config.nodes == ["localhost"]
        assert config.nemesis is True
        assert config.output_dir is None


class TestTestOrchestrator:
    def test_runs_to_completion(self, quick_config, sessions):
        workload, nodes, clients = make_workload(quick_config)
        orchestrator = TestOrchestrator(config=OrchestratorConfig(nodes=["m1", "m2", "m3"], nemesis=False))

        result = orchestrator.run(workload, sessions)

        assert result.valid is True
        assert result.op_count == 21
        assert result.check.details["acknowledged_count"] == 20
        assert nodes[:2] == ["m1", "m2"]
        assert all(c.torn_down for c in clients)

    def test_history_pairs(self, quick_config, sessions):
        workload, _, _ = make_workload(quick_config, limit=5)
        result = TestOrchestrator(config=OrchestratorConfig(nemesis=False)).run(workload, sessions)

        history = list(result.history)
        assert len(history) == 12
        for op in history:
            assert op.time >= 0
        invokes = [op for op in history if op.invoke]
        completions = [op for op in history if not op.invoke]
        assert len(invokes) == len(completions)

    def test_crash_records_info_and_new_process(self, sessions):
        config = RunConfig(name="memory-set", concurrency=1, time_limit=5.0, final_delay=0.0)
        workload, _, clients = make_workload(config, crash_on=frozenset({3}))
        result = TestOrchestrator(config=OrchestratorConfig(nodes=["m1", "m2"], nemesis=False)).run(
            workload, sessions
        )

        info = [op for op in result.history if op.info]
        assert len(info) == 1
        assert info[0].value == 3
        assert "lost connection" in info[0].error

        crashed = info[0].process
        later = [op.process for op in result.history if op.process == crashed + config.concurrency]
        assert later
        # Replacement client for the crashed slot.
        assert len(clients) == config.concurrency + 2
        assert result.check.details["recovered"] == []
        assert result.valid is True

    def test_final_phase_uses_new_process(self, quick_config, sessions):
        workload, _, _ = make_workload(quick_config, limit=4)
        result = TestOrchestrator(config=OrchestratorConfig(nemesis=False)).run(workload, sessions)

        reads = [op for op in result.history if op.f is Function.READ]
        assert len(reads) == 2
        assert reads[0].process >= quick_config.concurrency
        assert reads[1].value == [0, 1, 2, 3]

    def test_time_limit(self, sessions):
        config = RunConfig(name="memory-set", concurrency=1, time_limit=0.2, op_delay=0.05, final_delay=0.0)
        workload, _, _ = make_workload(config, limit=10_000)
        result = TestOrchestrator(config=OrchestratorConfig(nemesis=False, seed=1)).run(workload, sessions)

        assert result.duration_seconds < 2.0
        assert 0 < result.op_count < 100

    def test_nemesis_schedule(self, sessions):
        config = RunConfig(
            name="memory-set",
            concurrency=1,
            time_limit=0.5,
            op_delay=0.01,
            final_delay=0.0,
            nemesis_start=0.1,
            nemesis_stop=0.05,
        )
        workload, _, _ = make_workload(config, limit=10_000)
        nemesis = RecordingNemesis()
        TestOrchestrator(config=OrchestratorConfig(nemesis=True), nemesis=nemesis).run(workload, sessions)

        kinds = [kind for kind, _ in nemesis.events]
        assert kinds[0] == "start"
        assert "stop" in kinds
        # The network is always healed at the end.
        assert kinds[-1] == "stop"

    def test_writes_history(self, quick_config, sessions, tmp_path):
        workload, _, _ = make_workload(quick_config, limit=3)
        config = OrchestratorConfig(nemesis=False, output_dir=tmp_path)
        result = TestOrchestrator(config=config).run(workload, sessions)

        assert result.history_path is not None
        assert result.history_path.parent == tmp_path
        assert result.history_path.exists()

    def test_progress_callback(self, quick_config, sessions):
        workload, _, _ = make_workload(quick_config, limit=2)
        phases = []
        orchestrator = TestOrchestrator(config=OrchestratorConfig(nemesis=False))
        orchestrator.set_progress_callback(lambda phase, ops: phases.append(phase))

        orchestrator.run(workload, sessions)

        assert phases == ["setup", "main", "final"]

    def test_setup_failure_propagates(self, quick_config, sessions):
        class BrokenClient(MemoryClient):
            def setup(self, node: str) -> None:
                raise RuntimeError("cannot create tables")

        workload, _, _ = make_workload(quick_config)
        workload.client = lambda: BrokenClient(set(), [])

        with pytest.raises(RuntimeError, match="cannot create tables"):
            TestOrchestrator(config=OrchestratorConfig(nemesis=False)).run(workload, sessions)

    def test_sessions_closed(self, quick_config, sessions):
        sessions.acquire("m1")
        workload, _, _ = make_workload(quick_config, limit=1)
        result = TestOrchestrator(config=OrchestratorConfig(nemesis=False)).run(workload, sessions)

        assert result.leaked_sessions == 1
        assert sessions.open_count == 0
