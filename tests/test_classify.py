r"""
Tests for comdb2_check.classify module.
"""

import pytest

from comdb2_check.classify import (
    classify_exception,
    classify_logical_error,
    classify_prep_error,
    classify_transaction_abort,
    error_code,
    exception_kinds,
)
from comdb2_check.errors import ConnNotReady, OperationTimeout
from comdb2_check.types import ErrorClass

from conftest import IntegrityError


class DriverError(Exception):
    def __init__(self, message: str, error_code: int | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code


class TestTransactionAbort:
    @pytest.mark.parametrize(
        "message",
        [
            "transaction is not serializable",
            "unable to update record rc = 4",
            "selectv constraints violated",
            "Maximum number of retries done.",
        ],
    )
    def test_retryable(self, message):
        assert classify_transaction_abort(message) is ErrorClass.RETRYABLE

    def test_unknown_is_fatal(self):
        assert classify_transaction_abort("disk on fire") is ErrorClass.FATAL

    def test_retries_pattern_needs_period(self):
        assert classify_transaction_abort("Maximum number of retries done") is ErrorClass.FATAL

    def test_extra_patterns(self):
        patterns = ("Conflict on",)
        assert classify_transaction_abort("Conflict on tuple", patterns=patterns) is ErrorClass.RETRYABLE


class TestLogicalError:
    def test_integrity_kind(self):
        assert classify_logical_error("IntegrityError", None) is ErrorClass.LOGICAL_FAILURE
        assert classify_logical_error(["ConstraintException", "Exception"], None) is ErrorClass.LOGICAL_FAILURE

    def test_error_code_two(self):
        assert classify_logical_error("Error", 2) is ErrorClass.LOGICAL_FAILURE

    def test_integrity_message(self):
        result = classify_logical_error("Error", None, message="add key constraint violation")
        assert result is ErrorClass.LOGICAL_FAILURE

    def test_unknown_is_fatal(self):
        assert classify_logical_error("OperationalError", 1) is ErrorClass.FATAL


class TestPrepError:
    def test_cant_connect(self):
        result = classify_prep_error("Can't connect to db. (node m1)")
        assert result is ErrorClass.CONNECT_FAILURE_DURING_PREP

    def test_other_is_fatal(self):
        assert classify_prep_error("Connection reset") is ErrorClass.FATAL


class TestClassifyException:
    def test_retryable(self):
        assert classify_exception(DriverError("not serializable")) is ErrorClass.RETRYABLE

    def test_integrity_error_class(self):
        assert classify_exception(IntegrityError("dup")) is ErrorClass.LOGICAL_FAILURE

    def test_code_from_cause(self):
        outer = RuntimeError("wrapped")
        outer.__cause__ = DriverError("rejected", error_code=2)
        assert error_code(outer) == 2
        assert classify_exception(outer) is ErrorClass.LOGICAL_FAILURE

    def test_harness_errors_fatal(self):
        assert classify_exception(OperationTimeout("timeout")) is ErrorClass.FATAL
        # Even when the message looks retryable.
        assert classify_exception(ConnNotReady("not serializable")) is ErrorClass.FATAL

    def test_unknown_is_fatal(self):
        assert classify_exception(RuntimeError("boom")) is ErrorClass.FATAL


class TestHelpers:
    def test_error_code_missing(self):
        assert error_code(RuntimeError("x")) is None

    def test_exception_kinds(self):
        kinds = exception_kinds(IntegrityError("x"))
        assert kinds[0] == "IntegrityError"
        assert "Exception" in kinds
