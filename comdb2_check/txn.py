r"""
Transaction runner.

Turns a unit of work into an operation outcome:

1. Prepare the session (high availability, serializable isolation, retry
   budget, a probe query). If the probe cannot reach the database, nothing
   has happened yet and the operation definitely failed.
2. Run the work under a hard timeout. A timeout faults the session so a
   half-finished transaction never leaks into the next operation.
3. Re-run the whole unit of work after a retryable abort.
4. Convert the remaining errors. Reads have no side effects, so any error
   is a definite failure. For writes only logical rejections and connect
   failures during preparation are definite; anything else propagates and
   the caller records the operation as indeterminate.

    from comdb2_check.txn import TransactionRunner

    runner = TransactionRunner(sessions)
    result = runner.run(session, lambda txn: txn.query("select 1"), Function.READ)
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Any, TypeAlias

from comdb2_check.classify import (
    classify_exception,
    classify_prep_error,
    classify_transaction_abort,
)
from comdb2_check.config import OPERATION_TIMEOUT, PREP_FAILURE_DELAY
from comdb2_check.connectors.base import BaseConnector, Params
from comdb2_check.errors import CheckError, OperationTimeout, RetriesExhausted
from comdb2_check.session import Session, SessionManager
from comdb2_check.types import (
    Attempt,
    ConnectFailure,
    ErrorClass,
    Failed,
    Function,
    Outcome,
    Retry,
)

__all__ = ["Txn", "TransactionRunner", "NotCommitted", "Work"]

logger = logging.getLogger(__name__)


class Txn:
    """Statement interface handed to a unit of work."""

    def __init__(self, connector: BaseConnector, handle: Any) -> None:
        self._connector = connector
        self._handle = handle

    def query(self, sql: str, params: Params | None = None) -> list[tuple[Any, ...]]:
        return self._connector.query(self._handle, sql, params)

    def execute(self, sql: str, params: Params | None = None) -> int:
        return self._connector.execute(self._handle, sql, params)


Work: TypeAlias = Callable[[Txn], Any]


class NotCommitted(CheckError):
    """The work failed before its transaction was committed."""


class TransactionRunner:
    """Runs units of work on sessions with retries and a hard timeout."""

    def __init__(
        self,
        sessions: SessionManager,
        *,
        timeout: float = OPERATION_TIMEOUT,
        debug: bool = False,
        max_retries: int | None = None,
        prep_failure_delay: float = PREP_FAILURE_DELAY,
    ) -> None:
        self._sessions = sessions
        self._connector = sessions.connector
        self.timeout = timeout
        self.debug = debug
        self.max_retries = max_retries
        self.prep_failure_delay = prep_failure_delay

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def connector(self) -> BaseConnector:
        return self._connector

    def run(
        self,
        session: Session,
        work: Work,
        kind: Function,
        *,
        definite_before_commit: bool = False,
    ) -> Outcome[Any] | Failed:
        """Run a unit of work and decide its outcome.

        Args:
            session: Session to run on.
            work: Callable receiving a Txn; its return value is the outcome value.
            kind: Function of the operation; reads may always fail safely.
            definite_before_commit: Treat errors raised before the commit was
                issued as definite failures.

        Returns:
            Outcome with the work's value, or Failed when the operation
            definitely did not take effect.

        Raises:
            Exception: Any error whose effect on the database is unknown.
        """
        try:
            return self._run_in_session(session, work, definite_before_commit)
        except NotCommitted as e:
            cause = e.__cause__ or e
            logger.info("transaction not committed: %s", cause)
            return Failed(str(cause))
        except Exception as e:
            if kind is Function.READ:
                logger.info("read failed: %s", e)
                return Failed(str(e) or type(e).__name__)
            raise

    def _run_in_session(self, session: Session, work: Work, definite_before_commit: bool) -> Outcome[Any] | Failed:
        with self._sessions.with_session(session) as handle:
            try:
                attempt = self._run_with_timeout(handle, work, definite_before_commit)
            except NotCommitted:
                raise
            except Exception as e:
                if classify_exception(e, patterns=self._connector.retryable_patterns) is ErrorClass.LOGICAL_FAILURE:
                    logger.info("logical failure: %s", e)
                    return Failed(str(e), ErrorClass.LOGICAL_FAILURE)
                raise

        if isinstance(attempt, ConnectFailure):
            self._sessions.fault(session)
            return Failed("can't-connect", ErrorClass.CONNECT_FAILURE_DURING_PREP)
        return attempt

    def _run_with_timeout(self, handle: Any, work: Work, definite_before_commit: bool) -> Attempt:
        """Run the retry loop in a worker thread, bounded by the timeout."""
        cancelled = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="txn")
        future = executor.submit(self._retry_loop, handle, work, definite_before_commit, cancelled)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeout:
            cancelled.set()
            msg = "timeout"
            raise OperationTimeout(msg) from None
        finally:
            executor.shutdown(wait=False)

    def _retry_loop(
        self,
        handle: Any,
        work: Work,
        definite_before_commit: bool,
        cancelled: threading.Event,
    ) -> Attempt:
        retries = 0
        while True:
            attempt = self.attempt(handle, work, definite_before_commit=definite_before_commit)
            if not isinstance(attempt, Retry):
                return attempt
            if cancelled.is_set():
                msg = "timeout"
                raise OperationTimeout(msg)
            retries += 1
            if self.max_retries is not None and retries > self.max_retries:
                msg = f"Gave up after {self.max_retries} retries: {attempt.reason}"
                raise RetriesExhausted(msg)
            logger.info("RETRY %d: %s", retries, attempt.reason)

    def attempt(self, handle: Any, work: Work, *, definite_before_commit: bool = False) -> Attempt:
        """Prepare the session and run the work once."""
        try:
            self._connector.prepare(handle, debug=self.debug)
        except Exception as e:
            if classify_prep_error(str(e), pattern=self._connector.connect_failure_pattern) is ErrorClass.FATAL:
                raise
            logger.info("can't connect during transaction prep: %s", e)
            # Give the node a chance to wake up again
            time.sleep(self.prep_failure_delay)
            return ConnectFailure(str(e))

        committing = False
        try:
            self._connector.begin(handle)
            value = work(Txn(self._connector, handle))
            committing = True
            self._connector.commit(handle)
        except CheckError:
            self._abandon(handle)
            raise
        except Exception as e:
            self._abandon(handle)
            if classify_transaction_abort(str(e), patterns=self._connector.retryable_patterns) is ErrorClass.RETRYABLE:
                return Retry(str(e))
            if definite_before_commit and not committing:
                raise NotCommitted(str(e)) from e
            raise
        return Outcome(value)

    def _abandon(self, handle: Any) -> None:
        """Roll back after a failed attempt; the original error wins."""
        try:
            self._connector.rollback(handle)
        except Exception as e:
            logger.debug("rollback failed: %s", e)
