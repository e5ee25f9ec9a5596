r"""
Append-only operation history.

    from comdb2_check.history import History

    history = History()
    history.append(op)
    history.export_json("histories/set.json")
    loaded = History.load_json("histories/set.json")
"""

import json
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from comdb2_check.types import Function, Operation, OpType

__all__ = ["History"]


class History:
    """Ordered log of operation records across all processes.

    Records can only be appended. Appends are serialised, so the order of the
    history is the order in which the harness observed events.
    """

    def __init__(self, ops: Iterable[Operation] = ()) -> None:
        self._ops: list[Operation] = list(ops)
        self._lock = threading.Lock()

    def append(self, op: Operation) -> Operation:
        with self._lock:
            self._ops.append(op)
        return op

    def __len__(self) -> int:
        return len(self._ops)

    def __iter__(self) -> Iterator[Operation]:
        with self._lock:
            snapshot = list(self._ops)
        return iter(snapshot)

    def __getitem__(self, index: int) -> Operation:
        return self._ops[index]

    def filter(self, *, type: OpType | None = None, f: Function | None = None) -> list[Operation]:
        """Records matching a type and/or function."""
        return [
            op
            for op in self
            if (type is None or op.type is type) and (f is None or op.f is f)
        ]

    def completions(self) -> list[Operation]:
        return [op for op in self if not op.invoke]

    def to_list(self) -> list[dict[str, Any]]:
        return [op.to_dict() for op in self]

    def export_json(self, path: str | Path) -> Path:
        """Write the history as a JSON array of records."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_list(), f, indent=1)
        return path

    @classmethod
    def from_list(cls, records: Iterable[dict[str, Any]]) -> "History":
        return cls(Operation.from_dict(r) for r in records)

    @classmethod
    def load_json(cls, path: str | Path) -> "History":
        with open(path) as f:
            return cls.from_list(json.load(f))
