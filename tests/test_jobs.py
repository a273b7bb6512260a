"""Tests for job tracking."""

import pytest

from scv_report.errors import InputNotFoundError
from scv_report.jobs import (
    COMPLETED,
    FAILED,
    PENDING,
    PROCESSING,
    JobProgressReporter,
    JsonJobStore,
    run_tracked_report,
)
from scv_report.schema.config import ReportConfiguration


@pytest.fixture
def jobs(tmp_path):
    return JsonJobStore(tmp_path / "jobs")


class TestJsonJobStore:
    def test_create_and_get(self, jobs):
        created = jobs.create_job("job-1", "acme_x1", {"isFinal": False})
        loaded = jobs.get_job("job-1")
        assert loaded == created
        assert loaded.status == PENDING
        assert loaded.options == {"isFinal": False}
        assert loaded.ttl > 0

    def test_unknown_job(self, jobs):
        assert jobs.get_job("nope") is None
        with pytest.raises(KeyError):
            jobs.update_progress("nope", 10, "fetch_complete")

    def test_invalid_job_id(self, jobs):
        with pytest.raises(ValueError):
            jobs.get_job("../escape")

    def test_update_progress(self, jobs):
        jobs.create_job("job-1", "acme_x1")
        jobs.update_progress("job-1", 20, "fetch_complete", {"users": 3})
        job = jobs.update_progress("job-1", 150, "upload_complete")
        assert job.status == PROCESSING
        assert job.progress == 100
        assert job.current_step == 2
        assert job.step_name == "upload_complete"
        assert job.progress_logs[0]["users"] == 3
        assert job.progress_logs[0]["stepName"] == "fetch_complete"

    def test_complete(self, jobs):
        jobs.create_job("job-1", "acme_x1")
        job = jobs.complete_job("job-1", {"filename": "f.xlsx"})
        assert job.finished
        assert job.status == COMPLETED
        assert jobs.get_job("job-1").result == {"filename": "f.xlsx"}

    def test_fail(self, jobs):
        jobs.create_job("job-1", "acme_x1")
        error = InputNotFoundError("Object not found: x", project_id="acme_x1", step="fetch")
        job = jobs.fail_job("job-1", error)
        assert job.status == FAILED
        assert job.error["message"] == "Object not found: x"
        assert job.error["type"] == "InputNotFoundError"
        assert job.error["step"] == "fetch"


class TestTrackedReport:
    def test_reporter_records_progress(self, jobs):
        jobs.create_job("job-1", "acme_x1")
        JobProgressReporter(jobs, "job-1")(45, "headers_written")
        assert jobs.get_job("job-1").progress == 45

    def test_success(self, jobs, store, write_inputs, acme_products, acme_users):
        write_inputs("acme_x1", acme_products, acme_users)
        jobs.create_job("job-1", "acme_x1")
        manifest = run_tracked_report(ReportConfiguration("acme_x1"), store, jobs, "job-1")
        job = jobs.get_job("job-1")
        assert job.status == COMPLETED
        assert job.result["filename"] == manifest.filename
        assert [entry["progress"] for entry in job.progress_logs] == [20, 30, 45, 70, 85, 100]

    def test_failure(self, jobs, store):
        jobs.create_job("job-1", "acme_x1")
        with pytest.raises(InputNotFoundError):
            run_tracked_report(ReportConfiguration("acme_x1"), store, jobs, "job-1")
        job = jobs.get_job("job-1")
        assert job.status == FAILED
        assert job.error["step"] == "fetch"
