"""Poll-based job tracking for report runs.

A caller creates a job, runs the report with a :class:`JobProgressReporter`
as its progress callback, and clients poll :meth:`JsonJobStore.get_job`
until the status is ``completed`` or ``failed``.  Each job is one JSON
document in the store directory.

Usage::

    jobs = JsonJobStore("var/jobs")
    job = jobs.create_job(uuid4().hex, "niq_store_01", options)
    run_tracked_report(config, blob_store, jobs, job.job_id)
    jobs.get_job(job.job_id).status     # "completed"
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .errors import ReportError
from .report import ReportOrchestrator


logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

DEFAULT_TTL_HOURS = 24
TOTAL_STEPS = 6


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Job record
# ---------------------------------------------------------------------------

@dataclass
class JobRecord:
    """Tracking record of one report run."""
    job_id: str
    project_id: str
    status: str = PENDING
    progress: int = 0
    step_name: str = "initializing"
    current_step: int = 0
    total_steps: int = TOTAL_STEPS
    options: dict[str, Any] = field(default_factory=dict)
    progress_logs: list[dict[str, Any]] = field(default_factory=list)
    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    completed_at: str | None = None
    ttl: int = 0

    @property
    def finished(self) -> bool:
        return self.status in (COMPLETED, FAILED)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "JobRecord":
        return cls(**d)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class JsonJobStore:
    """Job records persisted as one JSON file per job."""

    def __init__(self, directory, ttl_hours: int = DEFAULT_TTL_HOURS):
        self.directory = Path(directory)
        self.ttl_hours = ttl_hours

    def _path(self, job_id: str) -> Path:
        if not job_id or os.sep in job_id or job_id.startswith("."):
            raise ValueError(f"Invalid job id: {job_id!r}")
        return self.directory / f"{job_id}.json"

    def _write(self, job: JobRecord) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(job.job_id)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(job.to_dict(), indent=2, default=str))
        tmp.replace(path)

    def create_job(self, job_id: str, project_id: str, options=None) -> JobRecord:
        created = datetime.now(timezone.utc)
        ttl = int((created + timedelta(hours=self.ttl_hours)).timestamp())
        job = JobRecord(job_id=job_id, project_id=project_id,
                        options=dict(options or {}), ttl=ttl,
                        created_at=created.isoformat(), updated_at=created.isoformat())
        self._write(job)
        logger.info("Job created: %s (%s)", job_id, project_id)
        return job

    def get_job(self, job_id: str) -> JobRecord | None:
        path = self._path(job_id)
        if not path.is_file():
            return None
        return JobRecord.from_dict(json.loads(path.read_text()))

    def _require(self, job_id: str) -> JobRecord:
        job = self.get_job(job_id)
        if job is None:
            raise KeyError(f"Unknown job: {job_id}")
        return job

    def update_progress(self, job_id: str, progress, step_name=None, extra=None) -> JobRecord:
        job = self._require(job_id)
        now = _now()
        job.status = PROCESSING
        job.progress = int(min(100, max(0, progress)))
        job.updated_at = now
        if step_name:
            job.step_name = step_name
            job.current_step += 1
        entry = {"timestamp": now, "progress": job.progress,
                 "stepName": step_name or "unknown"}
        entry.update(extra or {})
        job.progress_logs.append(entry)
        self._write(job)
        logger.info("Job %s progress %d%% (%s)", job_id, job.progress, step_name)
        return job

    def complete_job(self, job_id: str, result: dict) -> JobRecord:
        job = self._require(job_id)
        now = _now()
        job.status = COMPLETED
        job.progress = 100
        job.result = result
        job.updated_at = now
        job.completed_at = now
        self._write(job)
        logger.info("Job completed: %s", job_id)
        return job

    def fail_job(self, job_id: str, error: Exception) -> JobRecord:
        job = self._require(job_id)
        now = _now()
        job.status = FAILED
        job.error = {
            "message": getattr(error, "message", str(error)),
            "type": type(error).__name__,
            "step": getattr(error, "step", None),
            "timestamp": now,
        }
        job.updated_at = now
        job.completed_at = now
        self._write(job)
        logger.error("Job failed: %s: %s", job_id, job.error["message"])
        return job


class JobProgressReporter:
    """Progress callback that records checkpoints against a job."""

    def __init__(self, store: JsonJobStore, job_id: str):
        self.store = store
        self.job_id = job_id

    def __call__(self, percent, step_name, extra=None):
        self.store.update_progress(self.job_id, percent, step_name, extra)


def run_tracked_report(config, blob_store, job_store: JsonJobStore, job_id: str, **kwargs):
    """Run a report while recording progress, the result, or the failure."""
    orchestrator = ReportOrchestrator(
        config, blob_store, progress=JobProgressReporter(job_store, job_id), **kwargs)
    try:
        manifest = orchestrator.generate()
    except ReportError as exc:
        job_store.fail_job(job_id, exc)
        raise
    job_store.complete_job(job_id, manifest.to_dict())
    return manifest
