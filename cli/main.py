# cli/main.py
"""
CLI para transferência de dados entre duas instâncias PostgreSQL.

Uso:
    vctransfer test
    vctransfer dump
    vctransfer load
    vctransfer transfer
    vctransfer transfer-names
    vctransfer --config config/prod.yaml --verbose transfer

Exit code 0 on success, 1 on any fatal error (config, connection, missing
table, query/COPY failure, dump file I/O).
"""

import logging
from pathlib import Path
from typing import Callable, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from schemas.transfer_config import TransferConfig
from vctransfer import commands
from vctransfer.config import DEFAULT_CONFIG_PATH, load_config
from vctransfer.errors import TransferError
from vctransfer.transfer.bulk_copy import CopyResult
from vctransfer.transfer.reconciler import ReconcileStats

app = typer.Typer(help="Tool to transfer verified contracts data between 2 instances of blockscout dbs")
console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def print_stats(stats: ReconcileStats):
    """Print reconcile statistics in a table."""
    table = Table(title="Transfer Names Statistics")

    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Details", style="yellow")

    table.add_row("Rows Read", str(stats.total_rows), "Rows streamed from source")
    table.add_row("Inserted", str(stats.inserted), "Missing in destination, now copied")
    table.add_row("Skipped", str(stats.skipped), "Already present (same address_hash)")
    table.add_row("Failed", str(stats.failed), "Insert rejected by destination")

    if stats.duration_seconds is not None:
        table.add_row("Duration", f"{stats.duration_seconds:.1f}s", "Total run time")

    console.print(table)

    for key, message in stats.failures:
        console.print(f"[red]  - {key}: {escape(message)}[/red]")


def _run(
    ctx: typer.Context,
    action: Callable[[TransferConfig, Callable[[str], None]], T],
    description: str,
) -> T:
    """
    Load config, run one operation under a spinner, map TransferError to exit code 1.

    action receives the config and a callable that replaces the spinner text.
    """
    try:
        cfg = load_config(ctx.obj["config_path"])
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(description, total=None)
            return action(cfg, lambda text: progress.update(task, description=text))
    except TransferError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def _progress_text(stats: ReconcileStats) -> str:
    return (
        f"Transferring address names... {stats.total_rows} read, "
        f"{stats.inserted} inserted, {stats.skipped} skipped, {stats.failed} failed"
    )


def _report_copy(verb: str, result: CopyResult) -> None:
    rows = f"{result.rows} rows" if result.rows >= 0 else "rows"
    console.print(f"[green]Data {verb} {result.path} ({rows}, table {result.table})[/green]")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """Dump, load or reconcile one table between a source and a destination database."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    setup_logging(verbose)
    ctx.obj = {"config_path": config}


@app.command("test")
def test_cmd(ctx: typer.Context):
    """Check if database connection is working."""
    _run(ctx, lambda cfg, status: commands.check_connection(cfg), "Connecting to both databases...")
    console.print("[green]Database connection is working[/green]")


@app.command("dump")
def dump_cmd(ctx: typer.Context):
    """Dump data from source database to a file."""
    result = _run(ctx, lambda cfg, status: commands.dump(cfg), "Dumping source table...")
    _report_copy("dumped to", result)


@app.command("load")
def load_cmd(ctx: typer.Context):
    """Load data from a file to destination database."""
    result = _run(ctx, lambda cfg, status: commands.load(cfg), "Loading dump into destination...")
    _report_copy("loaded from", result)


@app.command("transfer")
def transfer_cmd(ctx: typer.Context):
    """Transfer data from source database to destination database."""
    result = _run(ctx, lambda cfg, status: commands.transfer(cfg), "Transferring table...")
    _report_copy("transferred through", result)
    console.print("[green]Data transferred successfully[/green]")


@app.command("transfer-names")
def transfer_names_cmd(ctx: typer.Context):
    """Transfer names from source database to destination database."""

    def reconcile(cfg: TransferConfig, status: Callable[[str], None]) -> ReconcileStats:
        return commands.transfer_names(cfg, on_progress=lambda s: status(_progress_text(s)))

    stats = _run(ctx, reconcile, "Transferring address names...")
    print_stats(stats)

    if stats.failed > 0:
        # Falhas por linha não são fatais
        console.print(f"[yellow]Warning: {stats.failed} rows failed to insert[/yellow]")
    console.print("[green]Data transferred successfully[/green]")


if __name__ == "__main__":
    app()
