"""Unit tests — built-in status module."""

from __future__ import annotations

import json
import uuid

import pytest

from actuator.exceptions import ValidationError
from actuator.execution.invoker import InvocationResult
from actuator.jobs.manager import JobManager
from actuator.modules.status import StatusModule
from actuator.protocol import ActionRequest
from actuator.validation import ParamsValidator


@pytest.fixture
def status_module(job_manager: JobManager) -> StatusModule:
    return StatusModule(job_manager)


@pytest.mark.unit
class TestManifest:
    def test_exposes_query(self, status_module: StatusModule) -> None:
        assert status_module.name == "status"
        assert status_module.manifest.action_names() == ["query"]
        assert status_module.SUPPORTS_DELAYED is False

    def test_query_requires_job_id(self, status_module: StatusModule) -> None:
        action = status_module.manifest.get_action("query")
        validator = ParamsValidator()
        validator.validate(action, {"job_id": "abc"})  # type: ignore[arg-type]
        with pytest.raises(ValidationError):
            validator.validate(action, {})  # type: ignore[arg-type]
        with pytest.raises(ValidationError):
            validator.validate(action, {"job_id": "abc", "extra": 1})  # type: ignore[arg-type]


@pytest.mark.unit
class TestQuery:
    async def test_reports_job_snapshot(
        self, status_module: StatusModule, job_manager: JobManager
    ) -> None:
        async def _runner() -> InvocationResult:
            return InvocationResult(exit_code=0, stdout=b'"anodaram"')

        job_id = await job_manager.create_job(
            ActionRequest(module="reverse", action="string", params="maradona", delayed=True),
            _runner,
        )
        await job_manager.join()

        action = status_module.manifest.get_action("query")
        result = await status_module.invoke(action, {"job_id": job_id})  # type: ignore[arg-type]
        assert result.succeeded
        data = json.loads(result.stdout)
        assert data["status"] == "completed"
        assert data["stdout"] == '"anodaram"'
        assert data["exit_code"] == 0

    async def test_unknown_job_fails_like_a_module(self, status_module: StatusModule) -> None:
        action = status_module.manifest.get_action("query")
        missing = str(uuid.uuid4())
        result = await status_module.invoke(action, {"job_id": missing})  # type: ignore[arg-type]
        assert result.exit_code == 1
        assert missing in result.stderr_text
        assert result.stdout == b""
