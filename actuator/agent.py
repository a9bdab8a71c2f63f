"""Agent composition root.

Wires registry, validator, invoker, job manager and dispatcher together from
explicit paths, and exposes :meth:`Agent.handle` for the transport layer: it
takes a raw message body and returns a JSON-safe response body.

``build_agent(settings)`` is the only place where configuration reaches the
engine.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from actuator.config import Settings
from actuator.dispatcher import ActionDispatcher, ActionOutcome, JobReceipt
from actuator.exceptions import ActuatorError, DiscoveryError
from actuator.execution.invoker import ProcessInvoker
from actuator.jobs.manager import JobManager
from actuator.jobs.spool import SpoolStore
from actuator.logging import get_logger
from actuator.modules.registry import ModuleRegistry
from actuator.modules.status import StatusModule
from actuator.protocol import ActionRequest, parse_request

log = get_logger(__name__)


class Agent:
    """A ready-to-use action engine.

    Usage::

        agent = Agent(modules_dir=Path("modules"), spool_dir=Path("/tmp/spool"))
        await agent.start()
        response = await agent.handle('{"data": {"module": "reverse", ...}}')
        await agent.shutdown()
    """

    def __init__(
        self,
        modules_dir: Path,
        spool_dir: Path,
        modules_config_dir: Path | None = None,
        action_timeout: float | None = None,
    ) -> None:
        self.modules_dir = modules_dir
        self.invoker = ProcessInvoker(timeout=action_timeout)
        self.registry = ModuleRegistry(invoker=self.invoker, config_dir=modules_config_dir)
        self.jobs = JobManager(SpoolStore(spool_dir))
        self.dispatcher = ActionDispatcher(self.registry, self.jobs)
        self._started = False

    async def start(self) -> None:
        """Close stale jobs, load external modules and register built-ins.

        An unreadable modules directory is logged; the agent keeps running
        with its built-in modules.
        """
        if self._started:
            return
        self.jobs.recover()
        try:
            await self.registry.load_modules(self.modules_dir)
        except DiscoveryError as exc:
            log.error("modules_dir_unavailable", path=exc.path, reason=exc.reason)
        self.registry.register_instance(StatusModule(self.jobs))
        self._started = True
        log.info("agent_started", modules=self.registry.list_modules())

    async def dispatch(self, request: ActionRequest) -> ActionOutcome | JobReceipt:
        return await self.dispatcher.dispatch(request)

    async def handle(self, payload: str | bytes | dict[str, Any]) -> dict[str, Any]:
        """Decode, dispatch, and serialise one transport message.

        Engine errors are turned into an ``error`` response scoped to this
        request; they never propagate to the transport loop.
        """
        try:
            request = parse_request(payload)
            outcome = await self.dispatcher.dispatch(request)
        except ActuatorError as exc:
            log.warning("request_rejected", error_type=type(exc).__name__, error=exc.message)
            return {
                "error": {
                    "type": type(exc).__name__,
                    "message": exc.message,
                    "context": {k: v for k, v in exc.context.items() if k != "raw_payload"},
                }
            }
        return outcome.to_dict()

    async def shutdown(self) -> None:
        """Wait for in-flight delayed jobs to finish."""
        await self.jobs.join()
        log.info("agent_stopped")


def build_agent(settings: Settings) -> Agent:
    """Build an :class:`Agent` from loaded settings.

    Raises:
        ConfigurationError: The spool directory cannot be used.
    """
    spool_dir = settings.prepare_spool_dir()
    return Agent(
        modules_dir=settings.agent.modules_dir,
        spool_dir=spool_dir,
        modules_config_dir=settings.agent.modules_config_dir,
        action_timeout=settings.agent.action_timeout,
    )
