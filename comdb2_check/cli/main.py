r"""
Command-line interface for comdb2-check.

    comdb2-check run jepsen -w set --nodes "m1 m2 m3"
    comdb2-check run local -w dirty-reads -c duckdb --time-limit 10
    comdb2-check check histories/set-1700000000.json --checker set
    comdb2-check workloads
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer

__all__ = ["app", "main"]

app = typer.Typer(
    name="comdb2-check",
    help="Fault-injection consistency tests for Comdb2 clusters.",
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s",
    )


def _echo_verdict(valid: bool | None, details: dict) -> None:
    for key, value in details.items():
        typer.echo(f"  {key}: {value}")
    label = {True: "valid", False: "INVALID", None: "unknown"}[valid]
    typer.echo(f"\nResult: {label}")


@app.command()
def run(
    dbname: Annotated[str | None, typer.Argument(help="Database name (default: COMDB2_DBNAME)")] = None,
    workload: Annotated[str, typer.Option("-w", "--workload", help="Workload: set, register, dirty-reads")] = "set",
    connector: Annotated[str, typer.Option("-c", "--connector", help="Connector: comdb2, duckdb")] = "comdb2",
    nodes: Annotated[
        str | None, typer.Option("-n", "--nodes", help="Whitespace-separated nodes (default: COMDB2_CLUSTER)")
    ] = None,
    concurrency: Annotated[int | None, typer.Option("--concurrency", help="Number of processes")] = None,
    time_limit: Annotated[float | None, typer.Option("--time-limit", help="Seconds to run for")] = None,
    rows: Annotated[int | None, typer.Option("--rows", help="Rows in the dirty-reads table")] = None,
    final_delay: Annotated[
        float | None, typer.Option("--final-delay", help="Seconds to wait before the final read")
    ] = None,
    output: Annotated[Path | None, typer.Option("-o", "--output", help="History output directory")] = None,
    seed: Annotated[int | None, typer.Option("--seed", help="Random seed")] = None,
    verbose: Annotated[bool, typer.Option("-v", "--verbose", help="Verbose output")] = False,
) -> None:
    """Run a workload against the cluster and check its history."""
    import random

    from comdb2_check.config import cluster_nodes, connect_timeout, debug_enabled, get_run_config, output_dir
    from comdb2_check.connectors import ConnectorRegistry
    from comdb2_check.runner import OrchestratorConfig, TestOrchestrator
    from comdb2_check.session import SessionManager
    from comdb2_check.txn import TransactionRunner
    from comdb2_check.workloads import WorkloadContext, WorkloadRegistry

    _configure_logging(verbose)

    if WorkloadRegistry.get(workload) is None:
        typer.echo(f"Unknown workload: {workload}. Available: {', '.join(WorkloadRegistry.list())}", err=True)
        raise typer.Exit(1)

    try:
        if connector == "comdb2":
            db = ConnectorRegistry.create(connector, dbname=dbname)
        elif connector == "duckdb":
            db = ConnectorRegistry.create(connector, path=dbname)
        else:
            db = ConnectorRegistry.create(connector)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    config = get_run_config(workload)
    overrides = {
        "concurrency": concurrency,
        "time_limit": time_limit,
        "rows": rows,
        "final_delay": final_delay,
    }
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})

    node_list = nodes.split() if nodes else cluster_nodes()
    sessions = SessionManager(db, connect_timeout=connect_timeout())
    runner = TransactionRunner(sessions, debug=debug_enabled())
    context = WorkloadContext(sessions=sessions, runner=runner, rng=random.Random(seed))
    test = WorkloadRegistry.create(workload, context, config)

    orchestrator = TestOrchestrator(
        config=OrchestratorConfig(nodes=node_list, output_dir=output or output_dir(), seed=seed),
    )

    def progress(phase: str, ops: int) -> None:
        typer.echo(f"  {phase}: {ops} history entries")

    if verbose:
        orchestrator.set_progress_callback(progress)

    typer.echo(f"Running {workload} on {db.name} ({' '.join(node_list)}) for {config.time_limit:g}s...")
    try:
        result = orchestrator.run(test, sessions)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"\nCompleted {result.op_count} operations in {result.duration_seconds:.1f}s")
    if result.history_path is not None:
        typer.echo(f"History: {result.history_path}")
    _echo_verdict(result.valid, result.check.details)
    if not result.check.ok:
        raise typer.Exit(1)


@app.command()
def check(
    history_path: Annotated[Path, typer.Argument(help="Path to a history JSON file")],
    checker: Annotated[
        str, typer.Option("-k", "--checker", help="Checker: set, dirty-reads, register-uids")
    ] = "set",
) -> None:
    """Check a previously recorded history."""
    from comdb2_check.checkers import CheckerRegistry
    from comdb2_check.history import History

    if not history_path.exists():
        typer.echo(f"File not found: {history_path}", err=True)
        raise typer.Exit(1)

    try:
        judge = CheckerRegistry.create(checker)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    history = History.load_json(history_path)
    typer.echo(f"Checking {len(history)} entries with {judge.name}...")
    result = judge.check(history)
    _echo_verdict(result.valid, result.details)
    if not result.ok:
        raise typer.Exit(1)


@app.command()
def workloads() -> None:
    """List available workloads and their presets."""
    from comdb2_check.config import RUN_CONFIGS
    from comdb2_check.workloads import WorkloadRegistry

    typer.echo("Available workloads:")
    for name in WorkloadRegistry.list():
        preset = RUN_CONFIGS.get(name)
        if preset is None:
            typer.echo(f"  - {name}")
        else:
            typer.echo(
                f"  - {name}: {preset.concurrency} processes, {preset.time_limit:g}s, "
                f"final delay {preset.final_delay:g}s"
            )


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
