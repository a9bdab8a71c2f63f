"""Job layer — On-disk spool records.

Every delayed job owns one directory under the spool directory::

    <spool_dir>/<job_id>/
        request.json   module, action, params, created_at
        status         running | completed | failed
        stdout         module stdout (empty while running)
        stderr         module stderr (empty while running)
        exitcode       written once the job is terminal

Each file is published with write-to-temp + ``os.replace`` so a concurrent
reader sees either the old or the new content, never a partial write.  On
completion ``status`` is published last.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
import time
import uuid
from pathlib import Path

from actuator.exceptions import SpoolError, UnknownJobError
from actuator.jobs.models import JobSnapshot, JobStatus
from actuator.logging import get_logger
from actuator.protocol import ActionRequest

log = get_logger(__name__)

STATUS_FILE = "status"
STDOUT_FILE = "stdout"
STDERR_FILE = "stderr"
EXITCODE_FILE = "exitcode"
REQUEST_FILE = "request.json"


class SpoolStore:
    """Filesystem-backed store of job records.

    Usage::

        spool = SpoolStore(Path("~/.actuator/spool"))
        job_id = spool.allocate(request)
        spool.finish(job_id, JobStatus.COMPLETED, stdout=b"...", stderr=b"", exit_code=0)
        spool.read(job_id).status
    """

    def __init__(self, spool_dir: Path) -> None:
        self._dir = spool_dir.expanduser()
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._dir

    def job_dir(self, job_id: str) -> Path:
        return self._dir / job_id

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def allocate(self, request: ActionRequest) -> str:
        """Create a fresh record in the ``running`` state and return its id.

        Identifiers whose directory already exists (e.g. left over by a
        previous agent run) are never reused.

        Raises:
            SpoolError: The record could not be created.
        """
        with self._lock:
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise SpoolError(f"Cannot create spool directory {self._dir}: {exc}") from exc

            while True:
                job_id = str(uuid.uuid4())
                try:
                    self.job_dir(job_id).mkdir()
                except FileExistsError:
                    log.warning("job_id_collision", job_id=job_id)
                    continue
                except OSError as exc:
                    raise SpoolError(f"Cannot create job record {job_id}: {exc}") from exc
                break

        job_dir = self.job_dir(job_id)
        record = {
            "job_id": job_id,
            "module": request.module,
            "action": request.action,
            "params": request.params,
            "request_id": request.request_id,
            "created_at": time.time(),
        }
        try:
            self._publish(job_dir / REQUEST_FILE, json.dumps(record, default=str).encode())
            self._publish(job_dir / STDOUT_FILE, b"")
            self._publish(job_dir / STDERR_FILE, b"")
            self._publish(job_dir / STATUS_FILE, JobStatus.RUNNING.value.encode())
        except OSError as exc:
            raise SpoolError(f"Cannot initialise job record {job_id}: {exc}") from exc
        return job_id

    def finish(
        self,
        job_id: str,
        status: JobStatus,
        stdout: bytes,
        stderr: bytes,
        exit_code: int | None,
    ) -> None:
        """Write the job's output and publish its terminal *status*.

        Raises:
            UnknownJobError: No record exists for *job_id*.
            SpoolError: *status* is not terminal, the job is already
                terminal, or the files could not be written.
        """
        if not status.is_terminal:
            raise SpoolError(f"Cannot finish job {job_id} with non-terminal status '{status.value}'")

        current = self.read_status(job_id)
        if current.is_terminal:
            raise SpoolError(
                f"Job {job_id} is already '{current.value}'",
                context={"job_id": job_id, "status": current.value},
            )

        job_dir = self.job_dir(job_id)
        try:
            self._publish(job_dir / STDOUT_FILE, stdout)
            self._publish(job_dir / STDERR_FILE, stderr)
            if exit_code is not None:
                self._publish(job_dir / EXITCODE_FILE, str(exit_code).encode())
            self._publish(job_dir / STATUS_FILE, status.value.encode())
        except OSError as exc:
            raise SpoolError(f"Cannot write results for job {job_id}: {exc}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def exists(self, job_id: str) -> bool:
        return _is_job_id(job_id) and (self.job_dir(job_id) / STATUS_FILE).is_file()

    def read_status(self, job_id: str) -> JobStatus:
        """Return the current status of *job_id*.

        Raises:
            UnknownJobError: No record exists for *job_id*.
            SpoolError: The status file holds an unknown value.
        """
        if not _is_job_id(job_id):
            raise UnknownJobError(job_id)
        try:
            raw = (self.job_dir(job_id) / STATUS_FILE).read_text().strip()
        except FileNotFoundError as exc:
            raise UnknownJobError(job_id) from exc
        try:
            return JobStatus(raw)
        except ValueError as exc:
            raise SpoolError(f"Job {job_id} has an invalid status '{raw}'") from exc

    def read(self, job_id: str) -> JobSnapshot:
        """Return a snapshot of the job's record.

        Raises:
            UnknownJobError: No record exists for *job_id*.
        """
        status = self.read_status(job_id)
        job_dir = self.job_dir(job_id)

        request: dict[str, object] = {}
        try:
            request = json.loads((job_dir / REQUEST_FILE).read_text())
        except (OSError, json.JSONDecodeError):
            log.warning("job_request_unreadable", job_id=job_id)

        exit_code: int | None = None
        exitcode_path = job_dir / EXITCODE_FILE
        if exitcode_path.exists():
            try:
                exit_code = int(exitcode_path.read_text().strip())
            except ValueError:
                log.warning("job_exitcode_unreadable", job_id=job_id)

        created_at = request.get("created_at")
        return JobSnapshot(
            job_id=job_id,
            status=status,
            module=str(request.get("module", "")),
            action=str(request.get("action", "")),
            exit_code=exit_code,
            stdout=_read_text(job_dir / STDOUT_FILE),
            stderr=_read_text(job_dir / STDERR_FILE),
            created_at=float(created_at) if isinstance(created_at, (int, float)) else None,
            updated_at=(job_dir / STATUS_FILE).stat().st_mtime,
        )

    def list_job_ids(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self._dir.iterdir()
            if entry.is_dir() and self.exists(entry.name)
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _publish(path: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _is_job_id(job_id: str) -> bool:
    try:
        return str(uuid.UUID(job_id)) == job_id
    except (ValueError, TypeError, AttributeError):
        return False


def _read_text(path: Path) -> str:
    try:
        return path.read_bytes().decode(errors="replace")
    except FileNotFoundError:
        return ""
