r"""
Test orchestrator.

Drives one workload against the cluster and produces a checked history:

1. Set up one client per process slot; slot ``i`` talks to node
   ``nodes[i % len(nodes)]``.
2. Each slot runs in its own thread, drawing invocations from the shared
   generator until the time limit. An invocation that raises is recorded as
   info; its process is considered crashed and the slot continues with a
   fresh client as process ``id + concurrency``.
3. Meanwhile the nemesis is started and stopped on a fixed schedule.
4. After the time limit the nemesis heals, the orchestrator waits for
   recovery and runs the final generator (if any) on a fresh client.
5. Every session is force-closed and the checker judges the history.

    from comdb2_check.runner import TestOrchestrator

    orchestrator = TestOrchestrator(config=OrchestratorConfig(nodes=["m1", "m2"]))
    result = orchestrator.run(workload, sessions)
    print(result.valid)
"""

import logging
import random
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from comdb2_check.history import History
from comdb2_check.nemesis import NoopNemesis
from comdb2_check.protocols import Client, Generator, Nemesis
from comdb2_check.session import SessionManager
from comdb2_check.types import CheckResult, Operation, OpType
from comdb2_check.workloads.base import Workload

__all__ = ["TestOrchestrator", "OrchestratorConfig", "TestResult", "ProgressCallback"]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

# Pause before retrying the setup of a replacement client.
CLIENT_RETRY_DELAY = 1.0


@dataclass
class OrchestratorConfig:
    """Configuration for a test run.

    Attributes:
        nodes: Cluster nodes, assigned to process slots round-robin.
        nemesis: Whether to schedule the nemesis during the run.
        output_dir: Directory to write the history to (None = don't write).
        seed: Seed for the op-delay stagger.
    """

    nodes: list[str] = field(default_factory=lambda: ["localhost"])
    nemesis: bool = True
    output_dir: Path | None = None
    seed: int | None = None


@dataclass
class TestResult:
    """Outcome of a test run.

    Attributes:
        workload: Workload name.
        history: Complete history.
        check: Checker verdict.
        started_at: Timestamp when the run started.
        completed_at: Timestamp when the run completed.
        leaked_sessions: Sessions still open at teardown.
        history_path: Where the history was written, if anywhere.
    """

    __test__ = False

    workload: str
    history: History
    check: CheckResult
    started_at: float = 0.0
    completed_at: float = 0.0
    leaked_sessions: int = 0
    history_path: Path | None = None

    @property
    def valid(self) -> bool | None:
        return self.check.valid

    @property
    def duration_seconds(self) -> float:
        """Total duration in seconds."""
        return self.completed_at - self.started_at

    @property
    def op_count(self) -> int:
        """Number of invocations."""
        return sum(1 for op in self.history if op.invoke)


class TestOrchestrator:
    """Runs workloads: process threads, nemesis schedule, final phase, check."""

    __test__ = False

    def __init__(self, *, config: OrchestratorConfig | None = None, nemesis: Nemesis | None = None) -> None:
        self._config = config or OrchestratorConfig()
        self._nemesis = nemesis or NoopNemesis()
        self._rng = random.Random(self._config.seed)
        self._progress_callback: ProgressCallback | None = None
        self._history = History()
        self._started_ns = 0

    def set_progress_callback(self, callback: ProgressCallback) -> None:
        """Set callback called with (phase, op count)."""
        self._progress_callback = callback

    def _progress(self, phase: str) -> None:
        if self._progress_callback:
            self._progress_callback(phase, len(self._history))

    def _now(self) -> int:
        return time.perf_counter_ns() - self._started_ns

    def _node(self, slot: int) -> str:
        nodes = self._config.nodes
        return nodes[slot % len(nodes)]

    def run(self, workload: Workload, sessions: SessionManager) -> TestResult:
        """Run a workload to completion and check its history.

        Args:
            workload: Workload to run.
            sessions: Session manager the workload's clients use.

        Returns:
            TestResult with the history and the checker's verdict.

        Raises:
            Exception: If the initial client setup fails.
        """
        config = workload.config
        self._history = History()
        started_at = time.time()
        self._started_ns = time.perf_counter_ns()
        logger.info(
            "running %s: %d processes for %.1fs on %s",
            workload.name,
            config.concurrency,
            config.time_limit,
            " ".join(self._config.nodes),
        )

        clients: list[Client] = []
        try:
            for slot in range(config.concurrency):
                client = workload.client()
                clients.append(client)
                client.setup(self._node(slot))
            self._progress("setup")

            processes = self._run_main_phase(workload, clients)
            self._progress("main")

            if workload.final_generator is not None:
                if config.final_delay > 0:
                    logger.info("waiting %.1fs for recovery", config.final_delay)
                    time.sleep(config.final_delay)
                self._run_final_phase(workload, max(processes) + 1)
                self._progress("final")
        finally:
            for client in clients:
                self._teardown(client)
            leaked = sessions.close_all()
            if leaked:
                logger.warning("closed %d sessions left open at teardown", leaked)

        check = workload.checker.check(self._history)
        logger.info("%s: valid=%s", check.checker, check.valid)

        result = TestResult(
            workload=workload.name,
            history=self._history,
            check=check,
            started_at=started_at,
            completed_at=time.time(),
            leaked_sessions=leaked,
        )
        if self._config.output_dir is not None:
            path = Path(self._config.output_dir) / f"{workload.name}-{int(started_at)}.json"
            result.history_path = self._history.export_json(path)
            logger.info("history written to %s", result.history_path)
        return result

    def _run_main_phase(self, workload: Workload, clients: list[Client]) -> list[int]:
        """Run every process slot until the time limit; returns final process ids."""
        config = workload.config
        deadline = time.monotonic() + config.time_limit
        stop = threading.Event()

        nemesis_thread = None
        if self._config.nemesis:
            nemesis_thread = threading.Thread(
                target=self._nemesis_loop,
                args=(config.nemesis_start, config.nemesis_stop, stop),
                name="nemesis",
                daemon=True,
            )
            nemesis_thread.start()

        with ThreadPoolExecutor(max_workers=len(clients), thread_name_prefix="process") as executor:
            futures = [
                executor.submit(self._worker, workload, slot, client, clients, deadline, stop)
                for slot, client in enumerate(clients)
            ]
            try:
                processes = [f.result() for f in futures]
            finally:
                stop.set()

        if nemesis_thread is not None:
            nemesis_thread.join()
        logger.info("healing network")
        self._nemesis.stop()
        return processes

    def _worker(
        self,
        workload: Workload,
        slot: int,
        client: Client,
        clients: list[Client],
        deadline: float,
        stop: threading.Event,
    ) -> int:
        config = workload.config
        process = slot
        while not stop.is_set() and time.monotonic() < deadline:
            op = workload.generator.next_op(process)
            if op is None:
                break
            f, value = op
            if not self._invoke(client, Operation(OpType.INVOKE, f, value, process)):
                self._teardown(client)
                process += config.concurrency
                replacement = self._open_client(workload, slot, deadline, stop)
                if replacement is None:
                    break
                client = clients[slot] = replacement
            if config.op_delay > 0:
                stop.wait(self._rng.uniform(0, 2 * config.op_delay))
        return process

    def _invoke(self, client: Client, op: Operation) -> bool:
        """Record an invocation and its completion; False if the process crashed."""
        invoke = self._history.append(replace(op, time=self._now()))
        try:
            completion = client.invoke(invoke)
        except Exception as e:
            logger.warning("process %d crashed: %s", op.process, e)
            self._history.append(
                replace(invoke.complete(OpType.INFO, error=str(e) or type(e).__name__), time=self._now())
            )
            return False
        self._history.append(replace(completion, process=op.process, time=self._now()))
        return True

    def _open_client(self, workload: Workload, slot: int, deadline: float, stop: threading.Event) -> Client | None:
        """Set up a replacement client, retrying until it works or time is up."""
        while not stop.is_set() and time.monotonic() < deadline:
            client = workload.client()
            try:
                client.setup(self._node(slot))
            except Exception as e:
                logger.warning("setting up client for slot %d failed: %s", slot, e)
                self._teardown(client)
                stop.wait(CLIENT_RETRY_DELAY)
                continue
            return client
        return None

    def _run_final_phase(self, workload: Workload, process: int) -> None:
        generator: Generator = workload.final_generator
        client = workload.client()
        try:
            client.setup(self._node(0))
            while (op := generator.next_op(process)) is not None:
                f, value = op
                if not self._invoke(client, Operation(OpType.INVOKE, f, value, process)):
                    break
        finally:
            self._teardown(client)

    def _nemesis_loop(self, start_delay: float, stop_delay: float, stop: threading.Event) -> None:
        while not stop.wait(start_delay):
            try:
                self._nemesis.start()
            except Exception as e:
                logger.error("nemesis start failed: %s", e)
            if stop.wait(stop_delay):
                return
            try:
                self._nemesis.stop()
            except Exception as e:
                logger.error("nemesis stop failed: %s", e)

    @staticmethod
    def _teardown(client: Any) -> None:
        try:
            client.teardown()
        except Exception as e:
            logger.debug("client teardown failed: %s", e)
