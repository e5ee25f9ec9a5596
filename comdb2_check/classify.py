r"""
Classification of database errors.

Pure functions: nothing here touches a connection. The transaction runner
decides what an operation's outcome is; these only say what kind of error it
saw.

    from comdb2_check.classify import classify_transaction_abort
    from comdb2_check.types import ErrorClass

    assert classify_transaction_abort("txn not serializable") is ErrorClass.RETRYABLE
"""

import re
from collections.abc import Iterable

from comdb2_check.errors import CheckError
from comdb2_check.types import ErrorClass

__all__ = [
    "RETRYABLE_PATTERNS",
    "INTEGRITY_PATTERNS",
    "INTEGRITY_KINDS",
    "LOGICAL_ERROR_CODES",
    "CONNECT_FAILURE_PATTERN",
    "classify_transaction_abort",
    "classify_logical_error",
    "classify_prep_error",
    "classify_exception",
    "error_code",
    "exception_kinds",
]

# Aborts that leave no side effect behind; the whole transaction can be re-run.
RETRYABLE_PATTERNS: tuple[str, ...] = (
    r"not serializable",
    r"unable to update record rc = 4",
    r"selectv constraints",
    r"Maximum number of retries done\.",
)

INTEGRITY_PATTERNS: tuple[str, ...] = (
    r"constraint violation",
    r"duplicate key",
    r"Constraint Error",
    r"UNIQUE constraint failed",
)

INTEGRITY_KINDS = frozenset({"IntegrityError", "ConstraintException"})

# Comdb2 return code for a rejected request that did not run.
LOGICAL_ERROR_CODES = frozenset({2})

CONNECT_FAILURE_PATTERN = "Can't connect to db."


def classify_transaction_abort(
    message: str,
    *,
    patterns: Iterable[str] = RETRYABLE_PATTERNS,
) -> ErrorClass:
    """Decide whether an aborted transaction may be retried.

    Args:
        message: Error message reported by the driver.
        patterns: Regular expressions for transient aborts.

    Returns:
        RETRYABLE if any pattern matches, otherwise FATAL.
    """
    if any(re.search(pattern, message) for pattern in patterns):
        return ErrorClass.RETRYABLE
    return ErrorClass.FATAL


def classify_logical_error(
    kind: str | Iterable[str],
    code: int | None,
    *,
    message: str = "",
) -> ErrorClass:
    """Decide whether an error is an expected application-level rejection.

    Args:
        kind: Exception class name, or every class name in its hierarchy.
        code: Driver error code, if any.
        message: Error message, checked for integrity violations.

    Returns:
        LOGICAL_FAILURE for integrity-constraint violations and known
        rejection codes, otherwise FATAL.
    """
    kinds = {kind} if isinstance(kind, str) else set(kind)
    if kinds & INTEGRITY_KINDS:
        return ErrorClass.LOGICAL_FAILURE
    if code in LOGICAL_ERROR_CODES:
        return ErrorClass.LOGICAL_FAILURE
    if message and any(re.search(p, message) for p in INTEGRITY_PATTERNS):
        return ErrorClass.LOGICAL_FAILURE
    return ErrorClass.FATAL


def classify_prep_error(message: str, *, pattern: str = CONNECT_FAILURE_PATTERN) -> ErrorClass:
    """Decide whether a session-preparation error happened before any work.

    Only a failure to reach the database qualifies: no statement of the
    unit of work has run yet, so the operation is known not to have happened.
    """
    if pattern in message:
        return ErrorClass.CONNECT_FAILURE_DURING_PREP
    return ErrorClass.FATAL


def classify_exception(
    exc: BaseException,
    *,
    patterns: Iterable[str] = RETRYABLE_PATTERNS,
) -> ErrorClass:
    """Classify an exception raised while running a unit of work.

    Harness errors (timeouts, unready connections) are always FATAL.
    """
    if isinstance(exc, CheckError):
        return ErrorClass.FATAL
    message = str(exc)
    if classify_transaction_abort(message, patterns=patterns) is ErrorClass.RETRYABLE:
        return ErrorClass.RETRYABLE
    return classify_logical_error(exception_kinds(exc), error_code(exc), message=message)


def error_code(exc: BaseException) -> int | None:
    """Driver error code of an exception or of the error it wraps."""
    for candidate in (exc, exc.__cause__):
        if candidate is None:
            continue
        code = getattr(candidate, "error_code", None)
        if isinstance(code, int):
            return code
    return None


def exception_kinds(exc: BaseException) -> list[str]:
    """Class names along the exception's hierarchy, most specific first."""
    return [cls.__name__ for cls in type(exc).__mro__]
