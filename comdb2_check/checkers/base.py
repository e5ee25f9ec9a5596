r"""
Checker registry and helpers shared by history checkers.

    from comdb2_check.checkers.base import CheckerRegistry

    checker = CheckerRegistry.create("dirty-reads")
    result = checker.check(history)
"""

from collections.abc import Iterable
from typing import Any

from comdb2_check.protocols import Checker

__all__ = ["CheckerRegistry", "sorted_values"]


class CheckerRegistry:
    """Registry for history checkers."""

    _checkers: dict[str, type[Any]] = {}

    @classmethod
    def register(cls, name: str) -> Any:
        """Decorator to register a checker class."""

        def decorator(checker_cls: type[Any]) -> type[Any]:
            cls._checkers[name] = checker_cls
            return checker_cls

        return decorator

    @classmethod
    def get(cls, name: str) -> type[Any] | None:
        """Get checker class by name."""
        return cls._checkers.get(name)

    @classmethod
    def list(cls) -> list[str]:
        """List registered checker names."""
        return list(cls._checkers.keys())

    @classmethod
    def create(cls, name: str, **kwargs: Any) -> Checker:
        """Create checker instance by name."""
        checker_cls = cls.get(name)
        if checker_cls is None:
            valid = ", ".join(cls.list()) or "none"
            msg = f"Unknown checker '{name}'. Registered: {valid}"
            raise ValueError(msg)
        return checker_cls(**kwargs)


def sorted_values(values: Iterable[Any]) -> list[Any]:
    """Sort values for reporting, falling back to repr order for mixed types."""
    values = list(values)
    try:
        return sorted(values)
    except TypeError:
        return sorted(values, key=repr)
