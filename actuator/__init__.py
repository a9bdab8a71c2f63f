"""Actuator — Host agent executing external modules on behalf of a server.

Requests arrive from the transport layer as decoded action requests.  The
engine resolves them against self-describing module executables, validates
their parameters, and runs them either inline or as delayed jobs whose
status and output are spooled to disk.

Architecture layers (bottom to top):
    1. Protocol   — ActionRequest and transport envelope decoding
    2. Modules    — metadata meta-schema, registry, external + built-in modules
    3. Validation — JSON schema checks of params and results
    4. Execution  — child process invocation with full output capture
    5. Jobs       — spool records and the delayed-action lifecycle
    6. Dispatcher — the façade tying the layers together
"""

__version__ = "0.1.0"
__author__ = "Actuator Contributors"
__license__ = "Apache-2.0"

from actuator.protocol import ActionRequest

__all__ = [
    "__version__",
    "ActionRequest",
]
