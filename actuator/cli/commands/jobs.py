"""CLI — Delayed job inspection commands."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from actuator.cli.runtime import error_exit, settings_from
from actuator.exceptions import JobError
from actuator.jobs.spool import SpoolStore

app = typer.Typer(help="Inspect delayed jobs in the spool directory.")
console = Console()

_STATUS_STYLE = {"running": "yellow", "completed": "green", "failed": "red"}


@app.command("list")
def list_jobs(ctx: typer.Context) -> None:
    """List every job found in the spool directory."""
    spool = SpoolStore(settings_from(ctx).agent.spool_dir)

    table = Table(title="Jobs")
    table.add_column("Job ID", style="cyan")
    table.add_column("Module")
    table.add_column("Action")
    table.add_column("Status")
    for job_id in spool.list_job_ids():
        try:
            snapshot = spool.read(job_id)
        except JobError as exc:
            table.add_row(job_id, "-", "-", f"[red]{exc.message}[/red]")
            continue
        style = _STATUS_STYLE[snapshot.status.value]
        table.add_row(
            job_id,
            snapshot.module,
            snapshot.action,
            f"[{style}]{snapshot.status.value}[/{style}]",
        )
    console.print(table)


@app.command("status")
def job_status(
    ctx: typer.Context,
    job_id: str = typer.Argument(help="Job id returned by a delayed action."),
) -> None:
    """Print the status and captured output of a job."""
    spool = SpoolStore(settings_from(ctx).agent.spool_dir)
    try:
        snapshot = spool.read(job_id)
    except JobError as exc:
        error_exit(exc.message)
    console.print(Syntax(json.dumps(snapshot.to_dict(), indent=2), "json"))
