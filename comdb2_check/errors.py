r"""
Errors raised by the harness itself.

Driver errors are never wrapped; these only describe conditions the harness
detects (timeouts, unready connections, impossible row counts).
"""

__all__ = [
    "CheckError",
    "ConnectTimeout",
    "ConnNotReady",
    "OperationTimeout",
    "RetriesExhausted",
    "UnexpectedRowCount",
    "SetupError",
]


class CheckError(Exception):
    """Base class for harness errors. Always classified Fatal."""


class ConnectTimeout(CheckError):
    """Opening a connection did not finish within the connect timeout."""


class ConnNotReady(CheckError):
    """The session's connection is closed or faulted."""


class OperationTimeout(CheckError):
    """A unit of work exceeded the per-operation timeout."""


class RetriesExhausted(CheckError):
    """A unit of work kept aborting past the configured retry budget."""


class UnexpectedRowCount(CheckError):
    """A single-row statement affected more than one row."""


class SetupError(CheckError):
    """A client could not prepare its tables."""
