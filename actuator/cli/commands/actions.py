"""CLI — Run a module action locally."""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.syntax import Syntax

from actuator.agent import Agent
from actuator.cli.runtime import error_exit, run_with_agent
from actuator.dispatcher import JobReceipt
from actuator.protocol import ActionRequest

console = Console()


def run(
    ctx: typer.Context,
    module: str = typer.Argument(help="Module name."),
    action: str = typer.Argument(help="Action name."),
    params: str = typer.Option("null", "--params", "-p", help="Action params as JSON."),
    delayed: bool = typer.Option(False, "--delayed", help="Run as a delayed job."),
    wait: bool = typer.Option(
        False, "--wait", help="With --delayed, print the job's final status."
    ),
) -> None:
    """Run MODULE ACTION and print the response.

    Delayed jobs print their receipt at once; the command still waits for
    the job to finish before exiting so the module is not orphaned.
    """
    try:
        decoded: Any = json.loads(params)
    except json.JSONDecodeError as exc:
        error_exit(f"--params is not valid JSON: {exc}")

    request = ActionRequest(module=module, action=action, params=decoded, delayed=delayed)

    async def _dispatch(agent: Agent) -> dict[str, Any]:
        outcome = await agent.dispatch(request)
        _print_json(outcome.to_dict())
        if isinstance(outcome, JobReceipt) and wait:
            snapshot = await agent.jobs.wait(outcome.job_id)
            _print_json(snapshot.to_dict())
            return snapshot.to_dict()
        return outcome.to_dict()

    response = run_with_agent(ctx, _dispatch)
    if response.get("status") == "failed":
        raise typer.Exit(1)


def _print_json(data: dict[str, Any]) -> None:
    console.print(Syntax(json.dumps(data, indent=2), "json"))
