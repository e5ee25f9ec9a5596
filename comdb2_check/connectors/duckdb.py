r"""
DuckDB embedded connector.

Runs the workloads against a local database file, for smoke-testing the
harness without a cluster. Every node name maps to the same file.

Requires: pip install duckdb

Environment variables:
    COMDB2_DUCKDB_PATH: Database path (default: comdb2-check.duckdb)

    from comdb2_check.connectors.duckdb import DuckDBConnector

    connector = DuckDBConnector("/tmp/check.duckdb")
"""

from typing import Any

from comdb2_check.classify import RETRYABLE_PATTERNS
from comdb2_check.config import get_env
from comdb2_check.connectors.base import BaseConnector, ConnectorRegistry, Params

__all__ = ["DuckDBConnector"]

_DDL = ("create", "drop", "alter")


@ConnectorRegistry.register("duckdb")
class DuckDBConnector(BaseConnector):
    """DuckDB connector; optimistic write conflicts count as retryable aborts."""

    retryable_patterns = RETRYABLE_PATTERNS + (r"Conflict on", r"write-write conflict")
    manages_schema = True

    def __init__(self, path: str | None = None) -> None:
        self._path = path or get_env("DUCKDB_PATH", default="comdb2-check.duckdb")

    @property
    def name(self) -> str:
        return "DuckDB"

    @property
    def version(self) -> str:
        try:
            import duckdb

            return duckdb.__version__
        except Exception:
            return "unknown"

    def open(self, node: str) -> Any:
        try:
            import duckdb
        except ImportError as e:
            msg = "duckdb package not installed. Install with: pip install duckdb"
            raise ImportError(msg) from e

        return duckdb.connect(self._path)

    def begin(self, handle: Any) -> None:
        handle.begin()

    def _run(self, handle: Any, sql: str, params: Params | None) -> Any:
        sql = self.render(sql, "${}")
        if params is None:
            return handle.execute(sql)
        return handle.execute(sql, params)

    def query(self, handle: Any, sql: str, params: Params | None = None) -> list[tuple[Any, ...]]:
        return [tuple(row) for row in self._run(handle, sql, params).fetchall()]

    def execute(self, handle: Any, sql: str, params: Params | None = None) -> int:
        result = self._run(handle, sql, params)
        if sql.lstrip().lower().startswith(_DDL):
            return 0
        # DML returns a single Count row.
        row = result.fetchone()
        return int(row[0]) if row else 0
