"""Request protocol — decoded action requests.

The transport layer hands the agent a message body of the form::

    {
      "data": {
        "module": "reverse",
        "action": "string",
        "params": "maradona",
        "delayed": false
      }
    }

``parse_request`` turns that body (as JSON text or an already-decoded
mapping) into an :class:`ActionRequest`.  A bare ``data`` object is accepted
too.  Envelope signing and routing fields belong to the transport and are
ignored here.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from actuator.exceptions import RequestError


class ActionRequest(BaseModel):
    """A single module action requested by the server."""

    model_config = ConfigDict(frozen=True)

    module: str = Field(min_length=1)
    action: str = Field(min_length=1)
    params: Any = None
    delayed: bool = False
    request_id: str | None = Field(
        default=None,
        description="Transport message id, used for log correlation only.",
    )

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.action}"


def parse_request(payload: str | bytes | dict[str, Any]) -> ActionRequest:
    """Decode a transport message body into an :class:`ActionRequest`.

    Raises:
        RequestError: The payload is not JSON, not an object, or lacks the
            module/action fields.
    """
    if isinstance(payload, (str, bytes)):
        try:
            body = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RequestError(f"Request is not valid JSON: {exc}", raw_payload=payload) from exc
    else:
        body = payload

    if not isinstance(body, dict):
        raise RequestError("Request body must be a JSON object", raw_payload=payload)

    data = body.get("data", body)
    if not isinstance(data, dict):
        raise RequestError("Request 'data' must be a JSON object", raw_payload=payload)

    try:
        return ActionRequest.model_validate(data)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise RequestError(
            f"Invalid action request ({fields})", raw_payload=payload
        ) from exc
