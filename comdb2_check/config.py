r"""
Harness configuration and workload presets.

Presets mirror the published test definitions:
    - set: 5 processes, one add every 100ms, final read after 30s recovery
    - register: 50 processes over independent keys, 200 ops per key
    - dirty-reads: a single process mixing reads and writes over 4 rows

Environment variables (prefix COMDB2_, also read from a .env file):
    COMDB2_DBNAME: Database name
    COMDB2_CLUSTER: Whitespace-separated node list (CLUSTER is also honoured)
    COMDB2_DEBUG: Enable ``set debug on`` for every transaction
    COMDB2_TIER: Comdb2 tier used to locate the database (default: default)
    COMDB2_CONNECT_TIMEOUT: Seconds allowed to open a connection
    COMDB2_DUCKDB_PATH: Database file for the embedded DuckDB connector
    COMDB2_OUTPUT_DIR: Directory where histories are written

    from comdb2_check.config import cluster_nodes, get_run_config

    nodes = cluster_nodes()
    config = get_run_config("set")
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from comdb2_check.types import RunConfig

__all__ = [
    "ENV_PREFIX",
    "DEFAULT_NODES",
    "TIMEOUT_DELAY",
    "CONNECT_TIMEOUT",
    "OPERATION_TIMEOUT",
    "NOT_READY_DELAY",
    "PREP_FAILURE_DELAY",
    "SERVER_MAX_RETRIES",
    "RUN_CONFIGS",
    "get_env",
    "get_run_config",
    "cluster_nodes",
    "database_name",
    "debug_enabled",
    "connect_timeout",
    "output_dir",
]

# Look for .env in current dir or the project root
_env_file = Path(".env")
if not _env_file.exists():
    _env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

ENV_PREFIX = "COMDB2_"

DEFAULT_NODES = "m1 m2 m3 m4 m5"

# Seconds. Statement timeout; connections get the same budget to open and whole
# transactions get one extra second on top of it.
TIMEOUT_DELAY = 5.0
CONNECT_TIMEOUT = TIMEOUT_DELAY
OPERATION_TIMEOUT = TIMEOUT_DELAY + 1.0

# Pause before reporting a closed connection, so a recovering node is not
# hammered with reconnects.
NOT_READY_DELAY = 1.0

# Pause after session preparation could not reach the database.
PREP_FAILURE_DELAY = 5.0

# Passed to ``set max_retries``; the server retries internally up to this many times.
SERVER_MAX_RETRIES = 100_000

RUN_CONFIGS: dict[str, RunConfig] = {
    "set": RunConfig(
        name="set",
        concurrency=5,
        time_limit=120.0,
        op_delay=0.1,
        final_delay=30.0,
    ),
    "register": RunConfig(
        name="register",
        concurrency=50,
        time_limit=120.0,
        op_delay=0.1,
        final_delay=0.0,
        ops_per_key=200,
    ),
    "dirty-reads": RunConfig(
        name="dirty-reads",
        concurrency=1,
        time_limit=120.0,
        op_delay=0.0,
        final_delay=0.0,
        rows=4,
    ),
}


def get_run_config(name: str) -> RunConfig:
    """Get the preset run configuration for a workload.

    Args:
        name: Workload name (set, register, dirty-reads).

    Returns:
        RunConfig for the workload.

    Raises:
        ValueError: If the workload has no preset.
    """
    if name not in RUN_CONFIGS:
        valid = ", ".join(RUN_CONFIGS.keys())
        msg = f"Unknown workload '{name}'. Valid workloads: {valid}"
        raise ValueError(msg)
    return RUN_CONFIGS[name]


def get_env(key: str, *, default: str | None = None) -> str | None:
    """Get environment variable with COMDB2_ prefix.

    Args:
        key: Variable name without prefix (e.g., "DBNAME").
        default: Default value if not set.

    Returns:
        Environment variable value or default.
    """
    return os.environ.get(f"{ENV_PREFIX}{key}", default)


def cluster_nodes() -> list[str]:
    """Nodes in the cluster, from COMDB2_CLUSTER or CLUSTER."""
    raw = get_env("CLUSTER") or os.environ.get("CLUSTER") or DEFAULT_NODES
    return raw.split()


def database_name() -> str | None:
    return get_env("DBNAME")


def debug_enabled() -> bool:
    """True when COMDB2_DEBUG is set to anything but an empty string."""
    return bool(get_env("DEBUG"))


def connect_timeout() -> float:
    raw = get_env("CONNECT_TIMEOUT")
    return float(raw) if raw else CONNECT_TIMEOUT


def output_dir() -> Path:
    return Path(get_env("OUTPUT_DIR", default="./histories"))
