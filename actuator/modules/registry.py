"""Module layer — Module registry.

The registry is the single point of truth for all loaded modules.
It handles:
  - Discovery of external modules in a directory (every executable file is
    queried for its metadata concurrently)
  - Registration of built-in module instances
  - Graceful degradation: a module whose metadata is malformed is rejected
    entirely, recorded in ``_failed`` and logged; loading continues with the
    remaining modules
  - Resolution of ``module.action`` pairs to their :class:`ActionSpec`

The registry is only mutated at startup.  Afterwards it is read-only and
shared by all concurrent dispatches without locking.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any

from actuator.exceptions import DiscoveryError, UnknownActionError, UnknownModuleError
from actuator.execution.invoker import DISCOVERY_TIMEOUT, ProcessInvoker
from actuator.logging import get_logger
from actuator.modules.base import BaseModule
from actuator.modules.external import ExternalModule
from actuator.modules.manifest import ActionSpec, ModuleManifest

log = get_logger(__name__)


class ModuleRegistry:
    """Runtime registry for Actuator modules.

    Usage::

        registry = ModuleRegistry(invoker=ProcessInvoker())
        await registry.load_modules(Path("/usr/share/actuator/modules"))
        registry.register_instance(StatusModule(jobs))

        action = registry.resolve("reverse", "string")
        module = registry.get("reverse")
    """

    def __init__(
        self,
        invoker: ProcessInvoker | None = None,
        config_dir: Path | None = None,
        discovery_timeout: float = DISCOVERY_TIMEOUT,
    ) -> None:
        self._invoker = invoker or ProcessInvoker()
        self._config_dir = config_dir
        self._discovery_timeout = discovery_timeout
        self._modules: dict[str, BaseModule] = {}
        # Rejected executables: path → reason
        self._failed: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_modules(self, directory: Path) -> list[BaseModule]:
        """Discover, validate and register every module in *directory*.

        Returns the modules that were registered.  Rejected executables are
        reported through :meth:`list_failed`.

        Raises:
            DiscoveryError: *directory* does not exist or cannot be read.
        """
        candidates = _list_executables(directory)
        log.debug("modules_scan_started", directory=str(directory), candidates=len(candidates))

        outcomes = await asyncio.gather(
            *(
                ExternalModule.load(
                    path,
                    self._invoker,
                    config_dir=self._config_dir,
                    timeout=self._discovery_timeout,
                )
                for path in candidates
            ),
            return_exceptions=True,
        )

        loaded: list[BaseModule] = []
        for path, outcome in zip(candidates, outcomes):
            if isinstance(outcome, DiscoveryError):
                self._reject(path, outcome.reason)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            try:
                self.register_instance(outcome)
            except DiscoveryError as exc:
                self._reject(path, exc.reason)
                continue
            loaded.append(outcome)

        log.info(
            "modules_loaded",
            directory=str(directory),
            loaded=len(loaded),
            failed=len(candidates) - len(loaded),
        )
        return loaded

    def register_instance(self, module: BaseModule) -> None:
        """Register a module instance under its manifest name.

        Raises:
            DiscoveryError: A module with the same name is already registered.
        """
        name = module.name
        if name in self._modules:
            raise DiscoveryError(
                str(getattr(module, "path", name)),
                f"a module named '{name}' is already registered",
            )
        self._modules[name] = module
        log.debug(
            "module_registered",
            module=name,
            actions=module.manifest.action_names(),
        )

    def _reject(self, path: Path, reason: str) -> None:
        self._failed[str(path)] = reason
        log.error("module_load_failed", path=str(path), reason=reason)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, module_name: str) -> BaseModule:
        """Return the module registered as *module_name*.

        Raises:
            UnknownModuleError: No module with this name is registered.
        """
        try:
            return self._modules[module_name]
        except KeyError:
            raise UnknownModuleError(module_name) from None

    def resolve(self, module_name: str, action_name: str) -> ActionSpec:
        """Return the action spec for ``module_name.action_name``.

        Raises:
            UnknownModuleError: The module is not registered.
            UnknownActionError: The module does not declare the action.
        """
        module = self._modules.get(module_name)
        if module is None:
            raise UnknownModuleError(module_name, action_name)
        action = module.manifest.get_action(action_name)
        if action is None:
            raise UnknownActionError(module_name, action_name)
        return action

    def is_available(self, module_name: str) -> bool:
        return module_name in self._modules

    def list_modules(self) -> list[str]:
        """Return names of all registered modules."""
        return sorted(self._modules)

    def list_failed(self) -> dict[str, str]:
        """Return path → reason for executables that were rejected."""
        return dict(self._failed)

    def get_manifest(self, module_name: str) -> ModuleManifest:
        return self.get(module_name).manifest

    def all_manifests(self) -> list[ModuleManifest]:
        return [self._modules[name].manifest for name in self.list_modules()]

    def unregister(self, module_name: str) -> None:
        """Remove a module from the registry (used in tests)."""
        self._modules.pop(module_name, None)

    def status_report(self) -> dict[str, Any]:
        """Return a structured status report.

        Schema::

            {
                "available": ["reverse", "status"],
                "failed": {"/usr/share/actuator/modules/broken": "metadata is not valid JSON"}
            }
        """
        return {
            "available": self.list_modules(),
            "failed": self.list_failed(),
        }


def _list_executables(directory: Path) -> list[Path]:
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except FileNotFoundError as exc:
        raise DiscoveryError(str(directory), "directory does not exist") from exc
    except NotADirectoryError as exc:
        raise DiscoveryError(str(directory), "not a directory") from exc
    except OSError as exc:
        raise DiscoveryError(str(directory), f"directory is not readable: {exc}") from exc

    executables: list[Path] = []
    for entry in entries:
        if entry.name.startswith("."):
            continue
        if entry.is_file() and os.access(entry.path, os.X_OK):
            executables.append(Path(entry.path))
        else:
            log.debug("module_candidate_skipped", path=entry.path)
    return executables
