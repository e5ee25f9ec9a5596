r"""
Database connectors for comdb2-check.

Each connector implements BaseConnector so sessions, the transaction runner
and the workloads stay driver agnostic.

    from comdb2_check.connectors import ConnectorRegistry

    connector = ConnectorRegistry.create("comdb2", dbname="jepsen")
"""

from comdb2_check.connectors.base import BaseConnector, ConnectorRegistry, Params
from comdb2_check.connectors.comdb2 import Comdb2Connector
from comdb2_check.connectors.duckdb import DuckDBConnector

__all__ = [
    "BaseConnector",
    "Comdb2Connector",
    "ConnectorRegistry",
    "DuckDBConnector",
    "Params",
]
