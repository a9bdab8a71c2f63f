"""Agent log output.

Every record is an event name plus keyword fields, rendered for a terminal
or as one JSON object per line.  While a request is dispatched, or a delayed
job runs, its ``request_id`` and ``job_id`` ride along on every record
without being passed to each log call.

stdout belongs to command output, so logs go to stderr or to a file.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

# Context variables, injected into every log record when set.
_ctx_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_ctx_job_id: ContextVar[str | None] = ContextVar("job_id", default=None)


def bind_request_context(
    request_id: str | None = None,
    job_id: str | None = None,
) -> None:
    """Bind request/job identifiers to the current async task / thread."""
    if request_id is not None:
        _ctx_request_id.set(request_id)
    if job_id is not None:
        _ctx_job_id.set(job_id)


def clear_request_context() -> None:
    _ctx_request_id.set(None)
    _ctx_job_id.set(None)


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Add ContextVar values to every log record."""
    if (request_id := _ctx_request_id.get()) is not None:
        event_dict.setdefault("request_id", request_id)
    if (job_id := _ctx_job_id.get()) is not None:
        event_dict.setdefault("job_id", job_id)
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Route all agent and library logging through one structlog pipeline.

    Replaces any handler already on the root logger, so calling it again
    (each CLI invocation does) reconfigures rather than duplicates output.

    Args:
        level:    debug, info, warning, error or critical.
        format:   ``"console"`` or ``"json"`` (one object per line).
        log_file: Append records here instead of writing to stderr.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=log_file is None and sys.stderr.isatty()
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level.upper())

    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Module-level logger; call as ``log.info("job_created", module="reverse")``."""
    return structlog.get_logger(name)
