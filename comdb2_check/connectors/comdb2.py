r"""
Comdb2 connector.

Requires: pip install comdb2

Environment variables:
    COMDB2_DBNAME: Database name (required unless passed explicitly)
    COMDB2_TIER: Tier used to resolve the database (default: default)
    COMDB2_DEBUG: Issue ``set debug on`` before every transaction

    from comdb2_check.connectors.comdb2 import Comdb2Connector

    connector = Comdb2Connector("jepsen")
    handle = connector.open("m1")
"""

import logging
from typing import Any

from comdb2_check.config import SERVER_MAX_RETRIES, database_name, get_env
from comdb2_check.connectors.base import BaseConnector, ConnectorRegistry, Params

__all__ = ["Comdb2Connector"]

logger = logging.getLogger(__name__)


@ConnectorRegistry.register("comdb2")
class Comdb2Connector(BaseConnector):
    """Comdb2 connector addressing one node of the cluster per connection."""

    def __init__(self, dbname: str | None = None, *, tier: str | None = None) -> None:
        dbname = dbname or database_name()
        if not dbname:
            msg = "Comdb2 database name required (argument or COMDB2_DBNAME)"
            raise ValueError(msg)
        self._dbname = dbname
        self._tier = tier or get_env("TIER", default="default")

    @property
    def name(self) -> str:
        return "Comdb2"

    @property
    def dbname(self) -> str:
        return self._dbname

    def open(self, node: str) -> Any:
        try:
            from comdb2 import dbapi2
        except ImportError as e:
            msg = "comdb2 package not installed. Install with: pip install 'comdb2-check[comdb2]'"
            raise ImportError(msg) from e

        logger.info("connecting to %s/%s", node, self._dbname)
        return dbapi2.connect(self._dbname, tier=self._tier, host=node)

    def close(self, handle: Any) -> None:
        # The driver raises InterfaceError when closing twice.
        if not self.is_closed(handle):
            handle.close()

    def is_closed(self, handle: Any) -> bool:
        """Whether the connection has been closed.

        dbapi2.Connection has no public ``closed`` flag; it drops its
        underlying cdb2 handle when closed.
        """
        return getattr(handle, "_hndl", None) is None

    def prepare_statements(self, *, debug: bool = False) -> list[str]:
        statements = ["set hasql on", "set transaction serializable"]
        if debug:
            statements.append("set debug on")
        statements.append(f"set max_retries {SERVER_MAX_RETRIES}")
        # The set statements are applied client side; this one reaches the server.
        statements.append("select 1=1")
        return statements

    def query(self, handle: Any, sql: str, params: Params | None = None) -> list[tuple[Any, ...]]:
        cursor = handle.cursor()
        try:
            cursor.execute(self.render(sql, "%({})s"), params or {})
            return [tuple(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def execute(self, handle: Any, sql: str, params: Params | None = None) -> int:
        cursor = handle.cursor()
        try:
            cursor.execute(self.render(sql, "%({})s"), params or {})
            return cursor.rowcount
        finally:
            cursor.close()
