"""Built-in ``status`` module — query delayed jobs.

Lets the server poll a job it started with a delayed request::

    {"module": "status", "action": "query", "params": {"job_id": "..."}}

The answer is the job snapshot as JSON on stdout.  An unknown job id is
reported the way an external module reports a failure: exit code 1 and a
diagnostic on stderr.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from actuator.exceptions import UnknownJobError
from actuator.execution.invoker import InvocationResult
from actuator.modules.base import BaseModule
from actuator.modules.manifest import ActionSpec, ModuleManifest

if TYPE_CHECKING:
    from actuator.jobs.manager import JobManager

_QUERY_INPUT: dict[str, Any] = {
    "type": "object",
    "properties": {"job_id": {"type": "string", "minLength": 1}},
    "required": ["job_id"],
    "additionalProperties": False,
}

_QUERY_OUTPUT: dict[str, Any] = {
    "type": "object",
    "properties": {
        "job_id": {"type": "string"},
        "status": {"enum": ["running", "completed", "failed"]},
        "exit_code": {"type": ["integer", "null"]},
        "stdout": {"type": "string"},
        "stderr": {"type": "string"},
    },
    "required": ["job_id", "status"],
}


class StatusModule(BaseModule):
    SUPPORTS_DELAYED = False

    def __init__(self, jobs: "JobManager") -> None:
        self._jobs = jobs
        self._manifest = ModuleManifest(
            name="status",
            description="Query the status and output of delayed actions.",
            actions=(
                ActionSpec(
                    module="status",
                    name="query",
                    input_schema=_QUERY_INPUT,
                    output_schema=_QUERY_OUTPUT,
                    description="Return the status, exit code and output of a job.",
                ),
            ),
        )

    @property
    def manifest(self) -> ModuleManifest:
        return self._manifest

    async def invoke(self, action: ActionSpec, params: Any) -> InvocationResult:
        job_id = params["job_id"]
        try:
            snapshot = self._jobs.query_status(job_id)
        except UnknownJobError as exc:
            return InvocationResult(exit_code=1, stderr=f"{exc.message}\n".encode())
        return InvocationResult(exit_code=0, stdout=json.dumps(snapshot.to_dict()).encode())
