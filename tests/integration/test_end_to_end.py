"""Integration tests — full request path through a started Agent.

Covers the wire payload, dispatch to real module executables, delayed jobs
in the spool and polling them through the built-in status module.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from actuator.agent import Agent
from actuator.dispatcher import ActionOutcome, JobReceipt
from actuator.exceptions import UnknownActionError, ValidationError
from actuator.jobs.models import JobStatus
from actuator.protocol import ActionRequest


def _payload(module: str, action: str, params: Any, delayed: bool = False) -> str:
    return json.dumps(
        {"data": {"module": module, "action": action, "params": params, "delayed": delayed}}
    )


async def _poll(agent: Agent, job_id: str, attempts: int = 200) -> dict[str, Any]:
    """Query the status module until the job leaves ``running``."""
    for _ in range(attempts):
        response = await agent.handle(_payload("status", "query", {"job_id": job_id}))
        if response["results"]["status"] != "running":
            return response["results"]
        await asyncio.sleep(0.05)
    raise AssertionError(f"job {job_id} never finished")


@pytest.mark.integration
class TestSynchronousActions:
    async def test_reverse_string(self, agent: Agent) -> None:
        response = await agent.handle(_payload("reverse", "string", "maradona"))
        assert response["status"] == "completed"
        assert response["results"] == "anodaram"
        assert response["exit_code"] == 0

    async def test_reverse_list(self, agent: Agent) -> None:
        response = await agent.handle(_payload("reverse", "list", [1, 2, 3, 4, 5]))
        assert response["results"] == [5, 4, 3, 2, 1]

    async def test_failing_action_reports_exit_code(self, agent: Agent) -> None:
        response = await agent.handle(_payload("echo", "fail", {}))
        assert response["status"] == "failed"
        assert response["exit_code"] == 5
        assert response["stderr"] == "boom\n"

    async def test_dispatch_returns_outcome(
        self, agent: Agent, reverse_request: ActionRequest
    ) -> None:
        outcome = await agent.dispatch(reverse_request)
        assert isinstance(outcome, ActionOutcome)
        assert outcome.results == "anodaram"

    async def test_bare_body_without_envelope(self, agent: Agent) -> None:
        response = await agent.handle({"module": "reverse", "action": "string", "params": "ab"})
        assert response["results"] == "ba"

    async def test_results_breaking_output_schema(self, agent: Agent) -> None:
        response = await agent.handle(_payload("echo", "bad_output", None))
        assert response["error"]["type"] == "ModuleOutputError"


@pytest.mark.integration
class TestRejectedRequests:
    async def test_unknown_action(self, agent: Agent) -> None:
        response = await agent.handle(_payload("reverse", "fake_action", "maradona"))
        assert response["error"]["type"] == "UnknownActionError"
        assert response["error"]["context"]["action"] == "fake_action"

    async def test_unknown_module(self, agent: Agent) -> None:
        response = await agent.handle(_payload("ghost", "string", "x"))
        assert response["error"]["type"] == "UnknownModuleError"

    async def test_invalid_params(self, agent: Agent) -> None:
        response = await agent.handle(_payload("reverse", "string", [1, 2, 3, 4, 5]))
        assert response["error"]["type"] == "ValidationError"
        assert response["error"]["context"]["field"] == "params"

    async def test_malformed_payload(self, agent: Agent) -> None:
        response = await agent.handle("{not json")
        assert response["error"]["type"] == "RequestError"
        assert "raw_payload" not in response["error"]["context"]

    async def test_undecodable_bytes_payload(self, agent: Agent) -> None:
        response = await agent.handle(b'{"data": {"module": "\xff"}}')
        assert response["error"]["type"] == "RequestError"

    async def test_rejected_requests_spawn_nothing(self, agent: Agent) -> None:
        with patch("actuator.execution.invoker.asyncio.create_subprocess_exec") as spawn:
            with pytest.raises(UnknownActionError):
                await agent.dispatch(ActionRequest(module="reverse", action="nope", params="x"))
            with pytest.raises(ValidationError):
                await agent.dispatch(ActionRequest(module="reverse", action="string", params=[1]))
            with pytest.raises(ValidationError):
                await agent.dispatch(
                    ActionRequest(module="echo", action="message", params={"times": 2})
                )
        spawn.assert_not_called()

    async def test_invalid_delayed_request_creates_no_job(self, agent: Agent) -> None:
        response = await agent.handle(_payload("echo", "touch", 42, delayed=True))
        assert response["error"]["type"] == "ValidationError"
        assert agent.jobs.list_jobs() == []


@pytest.mark.integration
class TestDelayedActions:
    async def test_delayed_reverse_then_poll(self, agent: Agent) -> None:
        response = await agent.handle(_payload("reverse", "string", "maradona", delayed=True))
        assert response["status"] == "running"
        job_id = response["job_id"]

        results = await _poll(agent, job_id)
        assert results["status"] == "completed"
        assert json.loads(results["stdout"]) == "anodaram"
        assert results["exit_code"] == 0

    async def test_receipt_precedes_completion(self, agent: Agent) -> None:
        receipt = await agent.dispatch(
            ActionRequest(module="echo", action="sleep", params=0.5, delayed=True)
        )
        assert isinstance(receipt, JobReceipt)
        assert agent.jobs.query_status(receipt.job_id).status is JobStatus.RUNNING
        snapshot = await agent.jobs.wait(receipt.job_id)
        assert snapshot.status is JobStatus.COMPLETED

    async def test_delayed_failure_is_recorded(self, agent: Agent) -> None:
        response = await agent.handle(_payload("echo", "fail", {}, delayed=True))
        results = await _poll(agent, response["job_id"])
        assert results["status"] == "failed"
        assert results["exit_code"] == 5
        assert results["stderr"] == "boom\n"
        assert results["stdout"] == '{"partial": true}'

    async def test_delayed_job_runs_the_module(self, agent: Agent, tmp_path: Path) -> None:
        marker = tmp_path / "marker"
        response = await agent.handle(_payload("echo", "touch", str(marker), delayed=True))
        await agent.jobs.wait(response["job_id"])
        assert marker.read_text() == "spawned\n"

    async def test_concurrent_delayed_jobs(self, agent: Agent) -> None:
        words = [f"word{i}" for i in range(10)]
        responses = await asyncio.gather(
            *(agent.handle(_payload("reverse", "string", w, delayed=True)) for w in words)
        )
        job_ids = [r["job_id"] for r in responses]
        assert len(set(job_ids)) == len(words)

        await agent.jobs.join()
        for word, job_id in zip(words, job_ids):
            snapshot = agent.jobs.query_status(job_id)
            assert snapshot.status is JobStatus.COMPLETED
            assert json.loads(snapshot.stdout) == word[::-1]

    async def test_status_of_unknown_job(self, agent: Agent) -> None:
        response = await agent.handle(
            _payload("status", "query", {"job_id": "00000000-0000-4000-8000-000000000000"})
        )
        assert response["status"] == "failed"
        assert "No job with id" in response["stderr"]

    async def test_status_module_rejects_delayed(self, agent: Agent) -> None:
        response = await agent.handle(_payload("status", "query", {"job_id": "x"}, delayed=True))
        assert response["error"]["type"] == "ValidationError"
        assert response["error"]["context"]["field"] == "delayed"


@pytest.mark.integration
class TestAgentStartup:
    async def test_builtin_status_module_registered(self, agent: Agent) -> None:
        assert agent.registry.list_modules() == ["echo", "reverse", "status"]

    async def test_missing_modules_dir_keeps_builtins(self, tmp_path: Path, spool_dir: Path) -> None:
        agent = Agent(modules_dir=tmp_path / "missing", spool_dir=spool_dir)
        await agent.start()
        try:
            assert agent.registry.list_modules() == ["status"]
        finally:
            await agent.shutdown()

    async def test_stale_jobs_failed_on_restart(self, modules_dir: Path, spool_dir: Path) -> None:
        first = Agent(modules_dir=modules_dir, spool_dir=spool_dir)
        stale_id = first.jobs.spool.allocate(
            ActionRequest(module="reverse", action="string", params="x", delayed=True)
        )

        second = Agent(modules_dir=modules_dir, spool_dir=spool_dir)
        await second.start()
        try:
            snapshot = second.jobs.query_status(stale_id)
            assert snapshot.status is JobStatus.FAILED
        finally:
            await second.shutdown()

    async def test_timeout_fails_delayed_job(self, modules_dir: Path, spool_dir: Path) -> None:
        agent = Agent(modules_dir=modules_dir, spool_dir=spool_dir, action_timeout=0.5)
        await agent.start()
        try:
            receipt = await agent.dispatch(
                ActionRequest(module="echo", action="sleep", params=30, delayed=True)
            )
            snapshot = await agent.jobs.wait(receipt.job_id)  # type: ignore[union-attr]
            assert snapshot.status is JobStatus.FAILED
            assert "timed out" in snapshot.stderr
        finally:
            await agent.shutdown()
