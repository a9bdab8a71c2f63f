"""CLI — Module inspection commands."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from actuator.agent import Agent
from actuator.cli.runtime import run_with_agent

app = typer.Typer(help="Inspect loaded modules and their actions.")
console = Console()


@app.command("list")
def list_modules(ctx: typer.Context) -> None:
    """List all registered modules and the executables that were rejected."""

    async def _collect(agent: Agent) -> dict:
        return {
            "manifests": agent.registry.all_manifests(),
            "failed": agent.registry.list_failed(),
        }

    report = run_with_agent(ctx, _collect)

    table = Table(title="Registered Modules")
    table.add_column("Name", style="cyan")
    table.add_column("Actions")
    table.add_column("Description")
    for manifest in report["manifests"]:
        table.add_row(
            manifest.name,
            ", ".join(manifest.action_names()),
            manifest.description,
        )
    console.print(table)

    if report["failed"]:
        failed = Table(title="Rejected Executables")
        failed.add_column("Path", style="red")
        failed.add_column("Reason")
        for path, reason in sorted(report["failed"].items()):
            failed.add_row(path, reason)
        console.print(failed)


@app.command("inspect")
def inspect_module(
    ctx: typer.Context,
    name: str = typer.Argument(help="Module name to inspect."),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON."),
) -> None:
    """Show the full metadata for a module."""

    async def _manifest(agent: Agent) -> dict:
        return agent.registry.get_manifest(name).to_dict()

    manifest = run_with_agent(ctx, _manifest)

    if json_output:
        console.print(Syntax(json.dumps(manifest, indent=2), "json"))
        return

    console.print(f"[bold]{manifest['name']}[/bold]")
    console.print(manifest.get("description", ""))
    console.print()

    table = Table(title="Actions")
    table.add_column("Action", style="cyan")
    table.add_column("Input type")
    table.add_column("Description")
    for action in manifest.get("actions", []):
        table.add_row(
            action["name"],
            str(action["input"].get("type", "any")),
            action.get("description", ""),
        )
    console.print(table)
