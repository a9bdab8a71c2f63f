"""Actuator — Exception hierarchy.

All exceptions raised by the agent inherit from ActuatorError so that callers
can catch the full family with a single except clause when needed.

Hierarchy:
    ActuatorError
    ├── ConfigurationError
    ├── RequestError
    ├── ModuleError
    │   ├── DiscoveryError
    │   └── UnknownActionError
    │       └── UnknownModuleError
    ├── ValidationError
    ├── ExecutionError
    │   ├── ExecutionTimeoutError
    │   └── ModuleOutputError
    └── JobError
        ├── UnknownJobError
        └── SpoolError
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from actuator.execution.invoker import InvocationResult


class ActuatorError(Exception):
    """Base exception for all Actuator errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


class ConfigurationError(ActuatorError):
    """Settings could not be applied (unusable spool dir, bad server URL...)."""


class RequestError(ActuatorError):
    """The transport payload could not be decoded into an action request."""

    def __init__(self, message: str, raw_payload: Any = None) -> None:
        super().__init__(message, context={"raw_payload": raw_payload})
        self.raw_payload = raw_payload


# ---------------------------------------------------------------------------
# Module layer
# ---------------------------------------------------------------------------


class ModuleError(ActuatorError):
    """Base for all module errors."""


class DiscoveryError(ModuleError):
    """The modules directory is unreadable or a module's metadata is invalid."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Cannot load module(s) from '{path}': {reason}",
            context={"path": path, "reason": reason},
        )
        self.path = path
        self.reason = reason


class UnknownActionError(ModuleError):
    """The requested module/action pair is not registered."""

    def __init__(self, module: str, action: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Module '{module}' does not expose action '{action}'",
            context={"module": module, "action": action},
        )
        self.module = module
        self.action = action


class UnknownModuleError(UnknownActionError):
    """No module with the given name is registered."""

    def __init__(self, module: str, action: str = "") -> None:
        super().__init__(module, action, message=f"Module '{module}' is not registered")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ActuatorError):
    """Request parameters do not satisfy the action's input schema."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(
            f"Invalid value for '{field}': {reason}",
            context={"field": field, "reason": reason},
        )
        self.field = field
        self.reason = reason


# ---------------------------------------------------------------------------
# Execution layer
# ---------------------------------------------------------------------------


class ExecutionError(ActuatorError):
    """The module process could not be run to completion."""

    def __init__(
        self,
        module: str,
        action: str,
        reason: str,
        result: "InvocationResult | None" = None,
    ) -> None:
        super().__init__(
            f"Failed to execute '{module}.{action}': {reason}",
            context={"module": module, "action": action, "reason": reason},
        )
        self.module = module
        self.action = action
        self.reason = reason
        self.result = result


class ExecutionTimeoutError(ExecutionError):
    """The module process exceeded its timeout and was killed."""

    def __init__(
        self,
        module: str,
        action: str,
        timeout_seconds: float,
        result: "InvocationResult | None" = None,
    ) -> None:
        super().__init__(
            module, action, f"timed out after {timeout_seconds}s", result=result
        )
        self.context["timeout_seconds"] = timeout_seconds
        self.timeout_seconds = timeout_seconds


class ModuleOutputError(ExecutionError):
    """The module exited successfully but its stdout breaks the output schema."""


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class JobError(ActuatorError):
    """Base for all delayed-job errors."""


class UnknownJobError(JobError):
    """No spool record exists for the given job id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"No job with id '{job_id}'", context={"job_id": job_id})
        self.job_id = job_id


class SpoolError(JobError):
    """A spool record could not be created or updated."""
