r"""
Session management.

Each logical process owns exactly one session at a time. A session that
faults is closed and never handed out again; the next use acquires a fresh
one.

    from comdb2_check.session import SessionManager

    sessions = SessionManager(connector)
    session = sessions.acquire("m1")
    with sessions.with_session(session) as handle:
        connector.query(handle, "select 1")
    sessions.close(session)
"""

import logging
import threading
import time
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeout
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from comdb2_check.config import CONNECT_TIMEOUT, NOT_READY_DELAY
from comdb2_check.connectors.base import BaseConnector
from comdb2_check.errors import ConnectTimeout, ConnNotReady
from comdb2_check.types import SessionState

__all__ = ["Session", "SessionManager", "SessionSlot"]

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Session:
    """A connection owned by one process.

    Attributes:
        node: Node the connection targets.
        process: Owning process, if known.
        state: Lifecycle state.
        handle: Driver connection while open.
    """

    node: str
    process: int | None = None
    state: SessionState = SessionState.CLOSED
    handle: Any = field(default=None, repr=False)

    @property
    def open(self) -> bool:
        return self.state is SessionState.OPEN


class SessionManager:
    """Opens, checks and closes sessions for a connector."""

    def __init__(
        self,
        connector: BaseConnector,
        *,
        connect_timeout: float = CONNECT_TIMEOUT,
        not_ready_delay: float = NOT_READY_DELAY,
    ) -> None:
        self._connector = connector
        self.connect_timeout = connect_timeout
        self.not_ready_delay = not_ready_delay
        self._sessions: set[Session] = set()
        self._lock = threading.Lock()

    @property
    def connector(self) -> BaseConnector:
        return self._connector

    def acquire(self, node: str, *, process: int | None = None) -> Session:
        """Open a new session to a node.

        Raises:
            ConnectTimeout: If the connection did not open in time.
        """
        session = Session(node=node, process=process, state=SessionState.OPENING)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"connect-{node}")
        future = executor.submit(self._connector.open, node)
        try:
            session.handle = future.result(timeout=self.connect_timeout)
        except FuturesTimeout:
            session.state = SessionState.FAULTED
            future.add_done_callback(self._close_late)
            msg = f"Timed out connecting to {node}"
            raise ConnectTimeout(msg) from None
        except Exception:
            session.state = SessionState.FAULTED
            raise
        finally:
            executor.shutdown(wait=False)

        session.state = SessionState.OPEN
        with self._lock:
            self._sessions.add(session)
        logger.debug("opened session to %s for process %s", node, process)
        return session

    def _close_late(self, future: Future[Any]) -> None:
        """Close a connection that finished opening after its timeout."""
        if future.cancelled() or future.exception() is not None:
            return
        try:
            self._connector.close(future.result())
        except Exception as e:
            logger.debug("closing late connection failed: %s", e)

    @contextmanager
    def with_session(self, session: Session) -> Iterator[Any]:
        """Run a block against the session's connection.

        If the connection is closed or the session faulted, waits
        ``not_ready_delay`` seconds and raises ConnNotReady instead of
        reconnecting. Any exception escaping the block faults the session.
        """
        if not session.open or self._connector.is_closed(session.handle):
            self.fault(session)
            time.sleep(self.not_ready_delay)
            msg = "Connection not yet ready."
            raise ConnNotReady(msg)
        try:
            yield session.handle
        except BaseException:
            self.fault(session)
            raise

    def fault(self, session: Session) -> None:
        """Mark a session faulted and release its connection."""
        self._release(session)
        session.state = SessionState.FAULTED

    def close(self, session: Session) -> None:
        """Close a session. Safe to call repeatedly."""
        self._release(session)
        if session.state is not SessionState.FAULTED:
            session.state = SessionState.CLOSED

    def close_all(self) -> int:
        """Force-close every tracked session; returns how many were open."""
        with self._lock:
            sessions = list(self._sessions)
        count = sum(1 for s in sessions if s.open)
        for session in sessions:
            self.close(session)
        return count

    def _release(self, session: Session) -> None:
        handle, session.handle = session.handle, None
        with self._lock:
            self._sessions.discard(session)
        if handle is None:
            return
        try:
            self._connector.close(handle)
        except Exception as e:
            logger.warning("error closing connection to %s: %s", session.node, e)

    @property
    def open_count(self) -> int:
        with self._lock:
            return sum(1 for s in self._sessions if s.open)


class SessionSlot:
    """The current session of one client, re-acquired after faults."""

    def __init__(self, sessions: SessionManager, node: str, *, process: int | None = None) -> None:
        self._sessions = sessions
        self.node = node
        self.process = process
        self._session: Session | None = None

    @property
    def session(self) -> Session | None:
        return self._session

    def get(self) -> Session:
        """Current session, acquiring a new one if it is closed or faulted."""
        if self._session is None or self._session.state in (SessionState.CLOSED, SessionState.FAULTED):
            self._session = self._sessions.acquire(self.node, process=self.process)
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._sessions.close(self._session)
