"""Root CLI command registration."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from studioboard.core.debug_log import export_logs_to_file, log_buffer, setup_debug_logging
from studioboard.version import get_studioboard_version

from .board import add, init, move, show


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, is_eager=True, help="Show version and exit")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SQLite database file (defaults to the user data directory)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="config.toml to use (defaults to the user config directory)",
)
@click.option("-v", "--verbose", is_flag=True, help="Print engine log records after the command")
@click.option(
    "--export-log",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write captured engine logs to this file on exit",
)
@click.pass_context
def cli(
    ctx: click.Context,
    version: bool,
    db_path: Path | None,
    config_path: Path | None,
    verbose: bool,
    export_log: Path | None,
) -> None:
    """Kanban board ordering and status transition engine."""
    if version:
        click.echo(f"studioboard {get_studioboard_version()}")
        ctx.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)

    setup_debug_logging(logging.DEBUG if verbose else logging.INFO)
    ctx.obj = {"db_path": db_path, "config_path": config_path}

    def _flush_logs() -> None:
        if verbose:
            for entry in log_buffer:
                click.echo(f"[{entry.level}] {entry.logger_name}: {entry.message}", err=True)
        if export_log is not None:
            count = export_logs_to_file(export_log)
            click.echo(f"Exported {count} log entries to {export_log}", err=True)

    ctx.call_on_close(_flush_logs)


cli.add_command(init)
cli.add_command(add)
cli.add_command(show)
cli.add_command(move)
