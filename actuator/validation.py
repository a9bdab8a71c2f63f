"""Schema validation of action parameters and results.

Parameters are checked against the action's ``input`` JSON schema before any
process is spawned.  Validation is structural only (types, required fields,
whatever the declared schema expresses) and never touches the module.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError as SchemaValidationError
from jsonschema.exceptions import best_match

from actuator.exceptions import ModuleOutputError, ValidationError
from actuator.modules.manifest import ActionSpec

ROOT_FIELD = "params"


class ParamsValidator:
    """Validates request parameters and module results.

    Validators are compiled once per schema and cached, so repeated calls for
    the same action are cheap.

    Usage::

        validator = ParamsValidator()
        validator.validate(action, "maradona")       # returns None
        validator.validate(action, [1, 2, 3])        # raises ValidationError
    """

    def __init__(self) -> None:
        self._cache: dict[int, Draft7Validator] = {}

    def validate(self, action: ActionSpec, params: Any) -> None:
        """Check *params* against the input schema of *action*.

        Raises:
            ValidationError: With the JSON path of the offending value as
                ``field`` and the schema violation as ``reason``.
        """
        error = self._first_error(action.input_schema, params)
        if error is not None:
            raise ValidationError(field=_field_path(error), reason=error.message)

    def validate_output(self, action: ActionSpec, results: Any) -> None:
        """Check a module's decoded stdout against its output schema.

        Actions without an output schema accept anything.

        Raises:
            ModuleOutputError: The results break the declared output schema.
        """
        if action.output_schema is None:
            return
        error = self._first_error(action.output_schema, results)
        if error is not None:
            raise ModuleOutputError(
                action.module,
                action.name,
                f"the module returned invalid results at '{_field_path(error, 'results')}': "
                f"{error.message}",
            )

    def _first_error(self, schema: dict[str, Any], instance: Any) -> SchemaValidationError | None:
        key = id(schema)
        validator = self._cache.get(key)
        if validator is None or validator.schema is not schema:
            validator = Draft7Validator(schema)
            self._cache[key] = validator
        return best_match(validator.iter_errors(instance))


def _field_path(error: SchemaValidationError, root: str = ROOT_FIELD) -> str:
    parts = [root, *(str(p) for p in error.absolute_path)]
    # A missing required property is reported on its parent object.
    if error.validator == "required" and isinstance(error.validator_value, list):
        missing = _missing_property(error)
        if missing is not None:
            parts.append(missing)
    return "/".join(parts)


def _missing_property(error: SchemaValidationError) -> str | None:
    if not isinstance(error.instance, dict):
        return None
    for name in error.validator_value:
        if name not in error.instance:
            return str(name)
    return None
