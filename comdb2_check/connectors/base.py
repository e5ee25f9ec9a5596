r"""
Base connector implementation with common functionality.

A connector knows how to open a connection to one node, how to run a
statement on it and how to delimit a transaction. Everything above it
(sessions, the transaction runner, workloads) is driver agnostic.

Statements use ``:name`` placeholders with a dict of parameters; each
connector renders them in its driver's parameter style.

    from comdb2_check.connectors.base import BaseConnector

    class MyConnector(BaseConnector):
        def open(self, node: str) -> Any:
            ...
"""

import re
from abc import ABC, abstractmethod
from typing import Any

from comdb2_check.classify import CONNECT_FAILURE_PATTERN, RETRYABLE_PATTERNS

__all__ = ["BaseConnector", "ConnectorRegistry", "Params"]

Params = dict[str, Any]

_PLACEHOLDER = re.compile(r"(?<![:\w]):(\w+)")


class ConnectorRegistry:
    """Registry for database connectors."""

    _connectors: dict[str, type["BaseConnector"]] = {}

    @classmethod
    def register(cls, name: str) -> Any:
        """Decorator to register a connector class."""

        def decorator(connector_cls: type["BaseConnector"]) -> type["BaseConnector"]:
            cls._connectors[name] = connector_cls
            return connector_cls

        return decorator

    @classmethod
    def get(cls, name: str) -> type["BaseConnector"] | None:
        """Get connector class by name."""
        return cls._connectors.get(name)

    @classmethod
    def list(cls) -> list[str]:
        """List registered connector names."""
        return list(cls._connectors.keys())

    @classmethod
    def create(cls, name: str, **kwargs: Any) -> "BaseConnector":
        """Create connector instance by name."""
        connector_cls = cls.get(name)
        if connector_cls is None:
            valid = ", ".join(cls.list()) or "none"
            msg = f"Unknown connector '{name}'. Registered: {valid}"
            raise ValueError(msg)
        return connector_cls(**kwargs)


class BaseConnector(ABC):
    """Base class for database connectors."""

    # Transient aborts for this database, see classify_transaction_abort.
    retryable_patterns: tuple[str, ...] = RETRYABLE_PATTERNS
    connect_failure_pattern: str = CONNECT_FAILURE_PATTERN

    # Whether workloads should create their tables themselves.
    manages_schema: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable connector name."""
        ...

    @abstractmethod
    def open(self, node: str) -> Any:
        """Open a connection to a node and return the driver handle."""
        ...

    def close(self, handle: Any) -> None:
        handle.close()

    def is_closed(self, handle: Any) -> bool:
        """Whether the driver reports the connection as closed."""
        return bool(getattr(handle, "closed", False))

    def prepare_statements(self, *, debug: bool = False) -> list[str]:
        """Statements issued before every unit of work.

        The last one must touch the server so connection faults surface
        before the work starts.
        """
        return ["select 1=1"]

    def prepare(self, handle: Any, *, debug: bool = False) -> None:
        for statement in self.prepare_statements(debug=debug):
            if statement.lstrip().lower().startswith("select"):
                self.query(handle, statement)
            else:
                self.execute(handle, statement)

    def begin(self, handle: Any) -> None:
        """Start a transaction. Drivers that begin implicitly do nothing."""

    def commit(self, handle: Any) -> None:
        handle.commit()

    def rollback(self, handle: Any) -> None:
        handle.rollback()

    @abstractmethod
    def query(self, handle: Any, sql: str, params: Params | None = None) -> list[tuple[Any, ...]]:
        """Run a statement and return all rows."""
        ...

    @abstractmethod
    def execute(self, handle: Any, sql: str, params: Params | None = None) -> int:
        """Run a statement and return the number of affected rows."""
        ...

    @staticmethod
    def render(sql: str, template: str) -> str:
        """Rewrite ``:name`` placeholders, e.g. template ``%({})s``."""
        return _PLACEHOLDER.sub(lambda m: template.format(m.group(1)), sql)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"
