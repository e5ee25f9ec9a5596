r"""
Nemesis implementations.

Fault injection itself lives outside this package (it needs remote access to
the cluster); the harness only schedules whatever Nemesis it is given.

    from comdb2_check.nemesis import NoopNemesis, RecordingNemesis
"""

import logging
import threading
import time

__all__ = ["NoopNemesis", "RecordingNemesis"]

logger = logging.getLogger(__name__)


class NoopNemesis:
    """Injects nothing. The default for runs without fault injection."""

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass


class RecordingNemesis:
    """Records start/stop events with their monotonic time.

    Useful to verify schedules, and as a base for command-driven nemeses.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, float]] = []
        self._lock = threading.Lock()

    def start(self) -> None:
        logger.info("nemesis start")
        with self._lock:
            self.events.append(("start", time.monotonic()))

    def stop(self) -> None:
        logger.info("nemesis stop")
        with self._lock:
            self.events.append(("stop", time.monotonic()))
