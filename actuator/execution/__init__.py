"""Execution layer — module process invocation."""

from actuator.execution.invoker import InvocationResult, ProcessInvoker

__all__ = ["InvocationResult", "ProcessInvoker"]
