"""Module layer — BaseModule interface.

Any component that can describe itself and accept an invocation is a
module.  Two kinds exist:

  - :class:`~actuator.modules.external.ExternalModule` wraps an executable
    discovered on disk.
  - Built-in modules (e.g. :class:`~actuator.modules.status.StatusModule`)
    run in-process.

Both return an :class:`InvocationResult` so the dispatcher treats them the
same way.  Parameters reaching :meth:`BaseModule.invoke` are already
schema-validated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from actuator.execution.invoker import InvocationResult
from actuator.modules.manifest import ActionSpec, ModuleManifest


class BaseModule(ABC):
    """Abstract base class for all Actuator modules."""

    # Built-in modules answering in-process have nothing to spool.
    SUPPORTS_DELAYED: bool = True

    @property
    @abstractmethod
    def manifest(self) -> ModuleManifest:
        """Return the validated metadata for this module."""

    @property
    def name(self) -> str:
        return self.manifest.name

    @abstractmethod
    async def invoke(self, action: ActionSpec, params: Any) -> InvocationResult:
        """Run *action* with *params* and return its exit status and output.

        Raises:
            ExecutionError: The action could not be run at all.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
