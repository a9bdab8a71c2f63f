"""CLI — Helpers shared by commands."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console

from actuator.agent import Agent, build_agent
from actuator.config import Settings
from actuator.exceptions import ActuatorError

T = TypeVar("T")

err_console = Console(stderr=True)


def settings_from(ctx: typer.Context) -> Settings:
    if isinstance(ctx.obj, Settings):
        return ctx.obj
    return Settings.load()


def run_with_agent(ctx: typer.Context, body: Callable[[Agent], Awaitable[T]]) -> T:
    """Start an agent, run *body* with it, and shut it down.

    Engine errors are printed in red and turn into exit code 1.
    """

    async def _main() -> T:
        agent = build_agent(settings_from(ctx))
        await agent.start()
        try:
            return await body(agent)
        finally:
            await agent.shutdown()

    try:
        return asyncio.run(_main())
    except ActuatorError as exc:
        err_console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)


def error_exit(message: Any) -> None:
    err_console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)
