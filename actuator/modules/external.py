"""Module layer — External (executable) modules.

An executable is a module if ``<exe> metadata`` exits 0 and prints a
metadata document that satisfies the meta-schema (see
:mod:`actuator.modules.manifest`).  Anything else excludes it.

When a modules configuration directory is given, ``<dir>/<name>.conf`` is
read as JSON, checked against the module's ``configuration`` schema and
passed to every invocation on stdin.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from actuator.exceptions import DiscoveryError, ExecutionError
from actuator.execution.invoker import DISCOVERY_TIMEOUT, InvocationResult, ProcessInvoker
from actuator.logging import get_logger
from actuator.modules.base import BaseModule
from actuator.modules.manifest import ActionSpec, ModuleManifest

log = get_logger(__name__)

CONFIG_SUFFIX = ".conf"


class ExternalModule(BaseModule):
    """A module backed by an executable file."""

    def __init__(
        self,
        path: Path,
        manifest: ModuleManifest,
        invoker: ProcessInvoker,
        configuration: dict[str, Any] | None = None,
    ) -> None:
        self.path = path
        self._manifest = manifest
        self._invoker = invoker
        self.configuration = configuration

    @property
    def manifest(self) -> ModuleManifest:
        return self._manifest

    @classmethod
    async def load(
        cls,
        path: Path,
        invoker: ProcessInvoker,
        config_dir: Path | None = None,
        timeout: float = DISCOVERY_TIMEOUT,
    ) -> "ExternalModule":
        """Query *path* for its metadata and build a module from it.

        Raises:
            DiscoveryError: The executable cannot be run, exits non-zero,
                prints malformed metadata, does not answer within
                *timeout* seconds, or its configuration file is invalid.
        """
        source = str(path)
        try:
            result = await invoker.describe(path, timeout=timeout)
        except ExecutionError as exc:
            raise DiscoveryError(source, exc.reason) from exc

        if not result.succeeded:
            reason = f"metadata query exited with code {result.exit_code}"
            if result.stderr:
                reason += f": {result.stderr_text.strip()}"
            raise DiscoveryError(source, reason)

        try:
            document = json.loads(result.stdout)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DiscoveryError(source, f"metadata is not valid JSON: {exc}") from exc

        manifest = ModuleManifest.from_document(document, source)
        configuration = _load_configuration(manifest, config_dir)
        return cls(path, manifest, invoker, configuration=configuration)

    async def invoke(self, action: ActionSpec, params: Any) -> InvocationResult:
        return await self._invoker.invoke(
            self.path,
            action.name,
            params,
            configuration=self.configuration,
            module=self.name,
        )


def _load_configuration(
    manifest: ModuleManifest, config_dir: Path | None
) -> dict[str, Any] | None:
    if config_dir is None:
        return None
    config_file = config_dir / f"{manifest.name}{CONFIG_SUFFIX}"
    if not config_file.exists():
        return None

    source = str(config_file)
    try:
        configuration = json.loads(config_file.read_text(encoding="utf-8"))
    except OSError as exc:
        raise DiscoveryError(source, f"cannot read configuration: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DiscoveryError(source, f"configuration is not valid JSON: {exc}") from exc

    if manifest.configuration_schema is not None:
        error = best_match(Draft7Validator(manifest.configuration_schema).iter_errors(configuration))
        if error is not None:
            raise DiscoveryError(source, f"invalid configuration: {error.message}")

    log.debug("module_configuration_loaded", module=manifest.name, path=source)
    return configuration
