"""Module layer — BaseModule interface, registry, and metadata."""

from actuator.modules.base import BaseModule
from actuator.modules.external import ExternalModule
from actuator.modules.manifest import ActionSpec, ModuleManifest
from actuator.modules.registry import ModuleRegistry
from actuator.modules.status import StatusModule

__all__ = [
    "ActionSpec",
    "BaseModule",
    "ExternalModule",
    "ModuleManifest",
    "ModuleRegistry",
    "StatusModule",
]
