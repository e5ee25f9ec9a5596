r"""
Tests for comdb2_check.session module.
"""

import time

import pytest

from comdb2_check.errors import ConnectTimeout, ConnNotReady
from comdb2_check.session import SessionManager, SessionSlot
from comdb2_check.types import SessionState


class TestAcquire:
    def test_acquire_opens(self, sessions, connector):
        session = sessions.acquire("m1", process=3)
        assert session.open
        assert session.node == "m1"
        assert session.process == 3
        assert connector.handles[0].node == "m1"
        assert sessions.open_count == 1

    def test_connect_timeout(self, connector):
        connector.open_delay = 0.5
        sessions = SessionManager(connector, connect_timeout=0.05, not_ready_delay=0.0)
        with pytest.raises(ConnectTimeout, match="m2"):
            sessions.acquire("m2")
        assert sessions.open_count == 0

    def test_late_connection_closed(self, connector):
        connector.open_delay = 0.2
        sessions = SessionManager(connector, connect_timeout=0.05, not_ready_delay=0.0)
        with pytest.raises(ConnectTimeout):
            sessions.acquire("m1")
        time.sleep(0.4)
        assert connector.handles
        assert connector.handles[0].closed

    def test_open_error_propagates(self, sessions, connector):
        connector.open_error = OSError("Can't connect to db.")
        with pytest.raises(OSError):
            sessions.acquire("m1")


class TestWithSession:
    def test_yields_handle(self, sessions):
        session = sessions.acquire("m1")
        with sessions.with_session(session) as handle:
            assert handle is session.handle

    def test_error_faults_session(self, sessions, connector):
        session = sessions.acquire("m1")
        with pytest.raises(RuntimeError):
            with sessions.with_session(session):
                raise RuntimeError("boom")
        assert session.state is SessionState.FAULTED
        assert connector.handles[0].closed
        assert sessions.open_count == 0

    def test_not_ready_after_fault(self, sessions):
        session = sessions.acquire("m1")
        sessions.fault(session)
        with pytest.raises(ConnNotReady, match="Connection not yet ready."):
            with sessions.with_session(session):
                pass

    def test_not_ready_when_driver_closed(self, sessions, connector):
        session = sessions.acquire("m1")
        connector.handles[0].closed = True
        with pytest.raises(ConnNotReady):
            with sessions.with_session(session):
                pass
        assert session.state is SessionState.FAULTED

    def test_not_ready_delay(self, connector):
        sessions = SessionManager(connector, connect_timeout=1.0)
        session = sessions.acquire("m1")
        sessions.fault(session)
        start = time.monotonic()
        with pytest.raises(ConnNotReady):
            with sessions.with_session(session):
                pass
        assert time.monotonic() - start >= 1.0


class TestClose:
    def test_close_idempotent(self, sessions):
        session = sessions.acquire("m1")
        sessions.close(session)
        sessions.close(session)
        assert session.state is SessionState.CLOSED

    def test_close_keeps_fault(self, sessions):
        session = sessions.acquire("m1")
        sessions.fault(session)
        sessions.close(session)
        assert session.state is SessionState.FAULTED

    def test_close_all(self, sessions, connector):
        sessions.acquire("m1")
        sessions.acquire("m2")
        assert sessions.close_all() == 2
        assert sessions.open_count == 0
        assert all(h.closed for h in connector.handles)


class TestSessionSlot:
    def test_reuses_open_session(self, sessions):
        slot = SessionSlot(sessions, "m1")
        assert slot.get() is slot.get()

    def test_fresh_session_after_fault(self, sessions, connector):
        slot = SessionSlot(sessions, "m1", process=0)
        first = slot.get()
        sessions.fault(first)
        second = slot.get()
        assert second is not first
        assert second.open
        assert len(connector.handles) == 2

    def test_close(self, sessions):
        slot = SessionSlot(sessions, "m1")
        session = slot.get()
        slot.close()
        assert session.state is SessionState.CLOSED
