"""Action dispatcher — the engine's entry point.

Pipeline for every decoded request:

    1. Resolve module + action in the registry  (UnknownActionError)
    2. Validate params against the input schema (ValidationError)
    3a. Synchronous: invoke the module inline and return an ActionOutcome
    3b. Delayed: hand off to the JobManager and return a JobReceipt at once

Steps 1 and 2 happen before any process is spawned and are never retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from actuator.exceptions import ValidationError
from actuator.execution.invoker import InvocationResult
from actuator.jobs.manager import JobManager
from actuator.logging import bind_request_context, clear_request_context, get_logger
from actuator.modules.registry import ModuleRegistry
from actuator.protocol import ActionRequest
from actuator.validation import ParamsValidator

log = get_logger(__name__)


@dataclass(frozen=True)
class ActionOutcome:
    """Result of a synchronous action.

    ``results`` is the module's stdout decoded as JSON (``None`` if stdout is
    not JSON).  A non-zero ``result.exit_code`` is reported here, not raised.
    """

    module: str
    action: str
    result: InvocationResult
    results: Any = None

    @property
    def succeeded(self) -> bool:
        return self.result.succeeded

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": self.module,
            "action": self.action,
            "status": "completed" if self.succeeded else "failed",
            "results": self.results,
            **self.result.to_dict(),
        }


@dataclass(frozen=True)
class JobReceipt:
    """Acknowledgement of a delayed action."""

    job_id: str
    module: str
    action: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": self.module,
            "action": self.action,
            "status": "running",
            "job_id": self.job_id,
        }


class ActionDispatcher:
    """Routes decoded action requests to modules.

    Usage::

        dispatcher = ActionDispatcher(registry, jobs)
        outcome = await dispatcher.dispatch(
            ActionRequest(module="reverse", action="string", params="maradona")
        )
        outcome.results   # "anodaram"
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        jobs: JobManager,
        validator: ParamsValidator | None = None,
    ) -> None:
        self._registry = registry
        self._jobs = jobs
        self._validator = validator or ParamsValidator()

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    @property
    def jobs(self) -> JobManager:
        return self._jobs

    async def dispatch(self, request: ActionRequest) -> ActionOutcome | JobReceipt:
        """Execute *request* inline, or start it as a job if it is delayed.

        Raises:
            UnknownActionError: The module/action pair is not registered.
            ValidationError: The params break the action's input schema, or a
                delayed request targets a module that cannot run delayed.
            ExecutionError: (synchronous only) the module could not be run,
                or its results break the declared output schema.
            SpoolError: (delayed only) the job record could not be created.
        """
        bind_request_context(request_id=request.request_id)
        try:
            action = self._registry.resolve(request.module, request.action)
            module = self._registry.get(request.module)
            self._validator.validate(action, request.params)

            if request.delayed:
                if not module.SUPPORTS_DELAYED:
                    raise ValidationError(
                        field="delayed",
                        reason=f"module '{module.name}' does not support delayed actions",
                    )
                job_id = await self._jobs.create_job(
                    request, lambda: module.invoke(action, request.params)
                )
                return JobReceipt(job_id=job_id, module=request.module, action=request.action)

            log.info("action_started", module=request.module, action=request.action)
            result = await module.invoke(action, request.params)
            results = result.json()
            if result.succeeded:
                self._validator.validate_output(action, results)
            log.info(
                "action_finished",
                module=request.module,
                action=request.action,
                exit_code=result.exit_code,
            )
            return ActionOutcome(
                module=request.module,
                action=request.action,
                result=result,
                results=results,
            )
        finally:
            clear_request_context()
