"""Execution layer — Process invoker.

Runs a module executable as a child process:

    <executable> <action>      stdin:  {"input": <params>, "configuration": {...}}
                               stdout: structured result (module contract)
                               stderr: diagnostics

stdout and stderr are drained concurrently with waiting for the child, so a
module writing more than a pipe buffer never deadlocks the agent.  The
invoker never interprets the output; a non-zero exit code is returned as
data, not raised.

Security notes:
  - The child is spawned with ``create_subprocess_exec`` (no shell).
  - When a timeout is set the child is killed and its output still drained.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from actuator.exceptions import ExecutionError, ExecutionTimeoutError
from actuator.logging import get_logger

log = get_logger(__name__)

METADATA_ARGUMENT = "metadata"

# Metadata queries are bounded even when actions may run forever.
DISCOVERY_TIMEOUT = 10.0


@dataclass(frozen=True)
class InvocationResult:
    """Exit status and complete output of one module process."""

    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode(errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode(errors="replace")

    def json(self) -> Any:
        """Return stdout decoded as JSON, or ``None`` if it is not JSON."""
        if not self.stdout.strip():
            return None
        try:
            return json.loads(self.stdout)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "exit_code": self.exit_code,
            "stdout": self.stdout_text,
            "stderr": self.stderr_text,
            "duration": round(self.duration, 3),
        }


class ProcessInvoker:
    """Spawns module executables and collects their output.

    Usage::

        invoker = ProcessInvoker(timeout=60)
        result = await invoker.invoke(Path("/usr/share/actuator/modules/reverse"),
                                      "string", "maradona")
        result.exit_code, result.stdout
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout

    async def invoke(
        self,
        executable: Path,
        action: str,
        params: Any,
        configuration: dict[str, Any] | None = None,
        timeout: float | None = None,
        module: str | None = None,
    ) -> InvocationResult:
        """Run ``<executable> <action>`` with *params* serialised on stdin.

        Raises:
            ExecutionError: The process could not be spawned.
            ExecutionTimeoutError: The process exceeded its timeout.
        """
        document: dict[str, Any] = {"input": params}
        if configuration is not None:
            document["configuration"] = configuration
        return await self.run(
            executable,
            [action],
            stdin=json.dumps(document).encode(),
            timeout=timeout,
            module=module,
        )

    async def describe(
        self, executable: Path, timeout: float = DISCOVERY_TIMEOUT
    ) -> InvocationResult:
        """Run ``<executable> metadata`` with an empty stdin and return its raw output.

        Raises:
            ExecutionError: The process could not be spawned.
            ExecutionTimeoutError: The query exceeded *timeout*.
        """
        return await self.run(executable, [METADATA_ARGUMENT], stdin=b"", timeout=timeout)

    async def run(
        self,
        executable: Path,
        arguments: list[str],
        stdin: bytes | None = None,
        timeout: float | None = None,
        module: str | None = None,
    ) -> InvocationResult:
        module_name = module or executable.name
        action_name = arguments[0] if arguments else ""
        effective_timeout = timeout if timeout is not None else self._timeout

        started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                str(executable),
                *arguments,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            log.error(
                "process_spawn_failed",
                executable=str(executable),
                action=action_name,
                error=str(exc),
            )
            raise ExecutionError(module_name, action_name, str(exc)) from exc

        log.debug("process_started", pid=proc.pid, module=module_name, action=action_name)

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(input=stdin), timeout=effective_timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            stdout_bytes, stderr_bytes = await proc.communicate()
            partial = InvocationResult(
                exit_code=proc.returncode if proc.returncode is not None else -1,
                stdout=stdout_bytes or b"",
                stderr=stderr_bytes or b"",
                duration=time.monotonic() - started,
            )
            log.warning(
                "process_timed_out",
                pid=proc.pid,
                module=module_name,
                action=action_name,
                timeout=effective_timeout,
            )
            raise ExecutionTimeoutError(
                module_name, action_name, effective_timeout or 0, result=partial
            )

        result = InvocationResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout_bytes or b"",
            stderr=stderr_bytes or b"",
            duration=time.monotonic() - started,
        )
        log.debug(
            "process_finished",
            pid=proc.pid,
            module=module_name,
            action=action_name,
            exit_code=result.exit_code,
            duration=round(result.duration, 3),
        )
        return result
