"""Module layer — Module metadata.

A ModuleManifest is the machine-readable contract between a module and the
agent.  External modules print it on stdout when invoked with the
``metadata`` argument; built-in modules construct it directly.

Document layout::

    {
      "name": "reverse",
      "description": "Reverses strings",
      "configuration": {<JSON schema for modules.d/reverse.conf>},
      "actions": [
        {
          "name": "string",
          "description": "Reverse a string",
          "input":  {<JSON schema for params>},
          "output": {<JSON schema for the stdout result>}
        }
      ]
    }

Only ``name``, ``actions`` and each action's ``name``/``input`` are required.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError, best_match

from actuator.exceptions import DiscoveryError

_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"

META_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "actuator module metadata",
    "type": "object",
    "required": ["name", "actions"],
    "properties": {
        "name": {"type": "string", "pattern": _NAME_PATTERN},
        "description": {"type": "string"},
        "configuration": {"type": "object"},
        "actions": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["name", "input"],
                "properties": {
                    "name": {"type": "string", "pattern": _NAME_PATTERN},
                    "description": {"type": "string"},
                    "input": {"type": "object"},
                    "output": {"type": "object"},
                },
            },
        },
    },
}

_META_VALIDATOR = Draft7Validator(META_SCHEMA)


@dataclass(frozen=True)
class ActionSpec:
    """Description of a single action exposed by a module."""

    module: str
    name: str
    input_schema: dict[str, Any]
    output_schema: dict[str, Any] | None = None
    description: str = ""

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.name}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "input": self.input_schema,
        }
        if self.output_schema is not None:
            data["output"] = self.output_schema
        return data


@dataclass(frozen=True)
class ModuleManifest:
    """Complete, validated metadata for a module."""

    name: str
    description: str = ""
    actions: tuple[ActionSpec, ...] = field(default_factory=tuple)
    configuration_schema: dict[str, Any] | None = None

    @classmethod
    def from_document(cls, document: Any, source: str) -> "ModuleManifest":
        """Validate *document* against the meta-schema and build a manifest.

        Args:
            document: Decoded metadata document.
            source:   Executable path, used in error messages.

        Raises:
            DiscoveryError: The document breaks the meta-schema, declares an
                invalid JSON schema, or repeats an action name.
        """
        error = best_match(_META_VALIDATOR.iter_errors(document))
        if error is not None:
            where = "/".join(str(p) for p in error.absolute_path) or "metadata"
            raise DiscoveryError(source, f"invalid metadata at '{where}': {error.message}")

        module_name = document["name"]
        config_schema = document.get("configuration")
        if config_schema is not None:
            _check_schema(config_schema, source, "configuration")

        actions: list[ActionSpec] = []
        seen: set[str] = set()
        for entry in document["actions"]:
            action_name = entry["name"]
            if action_name in seen:
                raise DiscoveryError(source, f"duplicate action '{action_name}'")
            seen.add(action_name)
            _check_schema(entry["input"], source, f"{action_name}.input")
            output_schema = entry.get("output")
            if output_schema is not None:
                _check_schema(output_schema, source, f"{action_name}.output")
            actions.append(
                ActionSpec(
                    module=module_name,
                    name=action_name,
                    input_schema=entry["input"],
                    output_schema=output_schema,
                    description=entry.get("description", ""),
                )
            )

        return cls(
            name=module_name,
            description=document.get("description", ""),
            actions=tuple(actions),
            configuration_schema=config_schema,
        )

    def get_action(self, action_name: str) -> ActionSpec | None:
        for action in self.actions:
            if action.name == action_name:
                return action
        return None

    def action_names(self) -> list[str]:
        return [a.name for a in self.actions]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "actions": [a.to_dict() for a in self.actions],
        }
        if self.configuration_schema is not None:
            data["configuration"] = self.configuration_schema
        return data


def _check_schema(schema: dict[str, Any], source: str, where: str) -> None:
    try:
        Draft7Validator.check_schema(schema)
    except SchemaError as exc:
        raise DiscoveryError(source, f"'{where}' is not a valid JSON schema: {exc.message}") from exc
