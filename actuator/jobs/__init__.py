"""Job layer — delayed action spooling and lifecycle."""

from actuator.jobs.manager import JobManager
from actuator.jobs.models import JobSnapshot, JobStatus
from actuator.jobs.spool import SpoolStore

__all__ = ["JobManager", "JobSnapshot", "JobStatus", "SpoolStore"]
