r"""
Command-line interface for comdb2-check.

    comdb2-check run jepsen -w set
    comdb2-check check histories/set-1700000000.json --checker set
"""

from comdb2_check.cli.main import app, main

__all__ = [
    "app",
    "main",
]
