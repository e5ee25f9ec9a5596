r"""
Tests for comdb2_check.history module.
"""

import json
import threading

from comdb2_check.history import History
from comdb2_check.types import Function, Operation, OpType


class TestHistory:
    def test_append_returns_op(self):
        history = History()
        op = Operation(OpType.INVOKE, Function.ADD, 1)
        assert history.append(op) is op
        assert len(history) == 1
        assert history[0] is op

    def test_concurrent_appends(self):
        history = History()

        def append_many(process: int) -> None:
            for i in range(200):
                history.append(Operation(OpType.INVOKE, Function.ADD, i, process))

        threads = [threading.Thread(target=append_many, args=(p,)) for p in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(history) == 1000

    def test_filter(self):
        history = History(
            [
                Operation(OpType.INVOKE, Function.ADD, 1),
                Operation(OpType.OK, Function.ADD, 1),
                Operation(OpType.INVOKE, Function.READ),
                Operation(OpType.FAIL, Function.READ),
            ]
        )
        assert len(history.filter(type=OpType.OK)) == 1
        assert len(history.filter(f=Function.READ)) == 2
        assert len(history.filter(type=OpType.INVOKE, f=Function.ADD)) == 1
        assert len(history.completions()) == 2

    def test_export_and_load(self, tmp_path):
        history = History(
            [
                Operation(OpType.INVOKE, Function.WRITE, (0, 3), process=1, time=5),
                Operation(OpType.OK, Function.WRITE, (0, 3), process=1, time=9, uid=0),
            ]
        )
        path = history.export_json(tmp_path / "nested" / "history.json")

        assert path.exists()
        records = json.loads(path.read_text())
        assert records[0] == {"type": "invoke", "f": "write", "value": [0, 3], "process": 1, "time": 5}

        loaded = History.load_json(path)
        assert len(loaded) == 2
        assert loaded[1].ok
        assert loaded[1].uid == 0
        assert loaded[1].value == [0, 3]
