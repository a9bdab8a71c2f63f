"""Actuator CLI — Entry point.

Usage:
    actuator modules list
    actuator modules inspect <module>
    actuator run <module> <action> --params '<json>' [--delayed] [--wait]
    actuator jobs list
    actuator jobs status <job_id>
    actuator serve
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from actuator.cli.commands import actions, jobs, modules, serve
from actuator.config import Settings
from actuator.exceptions import ConfigurationError
from actuator.logging import configure_logging

app = typer.Typer(
    name="actuator",
    help="Actuator — run self-describing modules on behalf of a server.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

console = Console(stderr=True)

app.add_typer(modules.app, name="modules")
app.add_typer(jobs.app, name="jobs")
app.command("run")(actions.run)
app.command("serve")(serve.serve)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Override the configured log level.")
    ] = None,
) -> None:
    try:
        settings = Settings.load(config_file=config)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        raise typer.Exit(1)

    configure_logging(
        level=log_level or settings.logging.level,
        format=settings.logging.format,
        log_file=str(settings.logging.file) if settings.logging.file else None,
    )
    ctx.obj = settings


if __name__ == "__main__":
    app()
