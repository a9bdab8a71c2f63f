"""Job layer — Delayed action lifecycle.

State transitions:
    running -> completed   (module exited 0)
    running -> failed      (spawn error, timeout, or non-zero exit)

``create_job`` returns as soon as the spool record exists; the module runs
in a background asyncio task that publishes the terminal state into the
record.  Callers never await module completion.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from actuator.exceptions import ExecutionError, JobError
from actuator.execution.invoker import InvocationResult
from actuator.jobs.models import JobSnapshot, JobStatus
from actuator.jobs.spool import SpoolStore
from actuator.logging import bind_request_context, get_logger
from actuator.protocol import ActionRequest

log = get_logger(__name__)

Runner = Callable[[], Awaitable[InvocationResult]]

_RESTART_NOTE = "actuator: the agent stopped before this job finished\n"


class JobManager:
    """Creates delayed jobs, runs them in the background, records results.

    Usage::

        jobs = JobManager(SpoolStore(spool_dir))
        job_id = await jobs.create_job(request, lambda: module.invoke(action, params))
        jobs.query_status(job_id).status   # JobStatus.RUNNING
        await jobs.join()
    """

    def __init__(self, spool: SpoolStore) -> None:
        self._spool = spool
        # job_id → asyncio.Task for in-flight jobs
        self._running_tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def spool(self) -> SpoolStore:
        return self._spool

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_job(self, request: ActionRequest, runner: Runner) -> str:
        """Allocate a spool record and start *runner* in the background.

        Raises:
            SpoolError: The record could not be created.  Nothing is run.
        """
        job_id = self._spool.allocate(request)
        task: asyncio.Task[None] = asyncio.create_task(
            self._run(job_id, request, runner), name=f"job_{job_id}"
        )
        self._running_tasks[job_id] = task
        task.add_done_callback(lambda t: self._running_tasks.pop(job_id, None))
        log.info(
            "job_created",
            job_id=job_id,
            module=request.module,
            action=request.action,
        )
        return job_id

    async def _run(self, job_id: str, request: ActionRequest, runner: Runner) -> None:
        bind_request_context(request_id=request.request_id, job_id=job_id)
        try:
            result = await runner()
        except ExecutionError as exc:
            self._record(self.on_invocation_error, job_id, exc)
        except Exception as exc:
            log.exception("job_runner_crashed", job_id=job_id)
            self._record(self.on_invocation_error, job_id, exc)
        else:
            self._record(self.on_invocation_complete, job_id, result)

    def _record(self, publish: Callable[[str, Any], None], job_id: str, outcome: Any) -> None:
        # The record stays "running" until recover() closes it on restart.
        try:
            publish(job_id, outcome)
        except JobError:
            log.exception("job_finish_failed", job_id=job_id)

    def on_invocation_complete(self, job_id: str, result: InvocationResult) -> None:
        """Publish the module's output and the status its exit code implies."""
        status = JobStatus.COMPLETED if result.succeeded else JobStatus.FAILED
        self._spool.finish(
            job_id,
            status,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )
        log.info(
            "job_finished",
            job_id=job_id,
            status=status.value,
            exit_code=result.exit_code,
        )

    def on_invocation_error(self, job_id: str, exc: Exception) -> None:
        """Record ``failed`` for a job whose module could not run to completion."""
        partial = exc.result if isinstance(exc, ExecutionError) else None
        stdout = partial.stdout if partial else b""
        stderr = partial.stderr if partial else b""
        if stderr and not stderr.endswith(b"\n"):
            stderr += b"\n"
        stderr += f"actuator: {exc}\n".encode()
        self._spool.finish(
            job_id,
            JobStatus.FAILED,
            stdout=stdout,
            stderr=stderr,
            exit_code=partial.exit_code if partial else None,
        )
        log.warning("job_failed", job_id=job_id, error=str(exc))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_status(self, job_id: str) -> JobSnapshot:
        """Return the current snapshot of *job_id*.

        Raises:
            UnknownJobError: No record exists for *job_id*.
        """
        return self._spool.read(job_id)

    def list_jobs(self) -> list[str]:
        return self._spool.list_job_ids()

    def is_running(self, job_id: str) -> bool:
        return job_id in self._running_tasks

    async def wait(self, job_id: str) -> JobSnapshot:
        """Wait for an in-flight job of this agent, then return its snapshot."""
        task = self._running_tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return self.query_status(job_id)

    async def join(self) -> None:
        """Wait for every in-flight job to reach a terminal state."""
        while self._running_tasks:
            await asyncio.gather(*list(self._running_tasks.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def recover(self) -> list[str]:
        """Mark records left ``running`` by a previous agent process as failed.

        Call once at startup, before any job is created.  Returns the ids of
        the records that were closed.
        """
        recovered: list[str] = []
        for job_id in self._spool.list_job_ids():
            if job_id in self._running_tasks:
                continue
            snapshot = self._spool.read(job_id)
            if snapshot.status is not JobStatus.RUNNING:
                continue
            self._spool.finish(
                job_id,
                JobStatus.FAILED,
                stdout=snapshot.stdout.encode(),
                stderr=(snapshot.stderr + _RESTART_NOTE).encode(),
                exit_code=None,
            )
            recovered.append(job_id)
        if recovered:
            log.warning("stale_jobs_recovered", count=len(recovered))
        return recovered
