"""CLI — Line-delimited JSON front end.

Reads one request body per line on stdin and writes one JSON response per
line on stdout.  Requests are handled concurrently; responses are written
as they complete, so a delayed request answers with its job id right away.
Useful for local testing and for wrapping the agent behind another
transport.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import typer

from actuator.agent import Agent
from actuator.cli.runtime import run_with_agent
from actuator.logging import get_logger

log = get_logger(__name__)


def serve(ctx: typer.Context) -> None:
    """Answer JSON requests read line by line from stdin."""
    run_with_agent(ctx, _serve_stdio)


async def _serve_stdio(agent: Agent) -> None:
    pending: set[asyncio.Task[None]] = set()

    async def _answer(line: str) -> None:
        response: dict[str, Any] = await agent.handle(line)
        sys.stdout.write(json.dumps(response) + "\n")
        sys.stdout.flush()

    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            break
        if not line.strip():
            continue
        task = asyncio.create_task(_answer(line))
        pending.add(task)
        task.add_done_callback(pending.discard)

    if pending:
        await asyncio.gather(*pending)
    log.info("stdin_closed")
