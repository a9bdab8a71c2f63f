"""Job layer — Status enum and snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Lifecycle status of a delayed action.

    Transitions: running -> completed | failed.  Terminal states never change.
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.RUNNING


@dataclass(frozen=True)
class JobSnapshot:
    """Point-in-time view of a job's spool record."""

    job_id: str
    status: JobStatus
    module: str = ""
    action: str = ""
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    created_at: float | None = None
    updated_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "module": self.module,
            "action": self.action,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
