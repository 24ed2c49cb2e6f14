"""
Job layer tests.

Covers:
1. JobDispatcher: queued, queue down -> inline, disabled -> inline, unknown job
2. run_job and the individual handlers
3. Celery task retry policy and dead-lettering on final failure
"""

import csv
from types import SimpleNamespace

import pytest

from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import UnknownJob
from placement_portal.db.postgres import get_db_session
from placement_portal.jobs import tasks
from placement_portal.jobs.dispatcher import JobDispatcher
from placement_portal.jobs.handlers import run_job, JOB_HANDLERS
from placement_portal.services import registration_service, selection_service


# ============================================================
# DISPATCHER
# ============================================================

def test_submit_enqueues_when_queue_up(seed, queued_dispatcher, recording_queue, query):
    drive_id = seed.drive()
    payload = {"drive_id": drive_id, "min_cgpa": 0, "min_10th": 0, "min_12th": 0, "max_backlogs": 0, "filtered_by": None}

    outcome = queued_dispatcher.submit("eligibility-filter", payload, attempts=3)

    assert outcome.queued is True
    assert outcome.result is None
    assert recording_queue.calls == [("eligibility-filter", payload, 3)]
    assert query("SELECT * FROM drive_eligibility_results") == []


def test_submit_runs_inline_when_queue_down(seed, fallback_dispatcher):
    drive_id = seed.drive()
    a = seed.student(cgpa=9)
    seed.student(cgpa=5)
    payload = {"drive_id": drive_id, "min_cgpa": 8, "min_10th": 0, "min_12th": 0, "max_backlogs": 0, "filtered_by": None}

    outcome = fallback_dispatcher.submit("eligibility-filter", payload)

    assert outcome.queued is False
    assert outcome.result["eligible_count"] == 1
    assert outcome.result["student_ids"] == [a]


def test_inline_run_joins_callers_transaction(seed, fallback_dispatcher):
    drive_id = seed.drive(status="posted")
    a = seed.student()
    payload = {"drive_id": drive_id, "published_by": None, "selected_students": [a]}

    with get_db_session() as db:
        fallback_dispatcher.submit("auto-publish", payload, db=db)
        # Visible on the same session before commit
        assert selection_service.list_selections(db, drive_id) == [a]
        db.rollback()

    with get_db_session() as db:
        assert selection_service.list_selections(db, drive_id) == []


def test_disabled_dispatcher_never_touches_queue(seed, recording_queue):
    drive_id = seed.drive(status="posted")
    dispatcher = JobDispatcher(queue=recording_queue, enabled=False)

    outcome = dispatcher.submit("auto-publish", {"drive_id": drive_id, "published_by": None, "selected_students": []})

    assert outcome.queued is False
    assert recording_queue.calls == []


def test_unknown_job_rejected_before_enqueue(queued_dispatcher, recording_queue):
    with pytest.raises(UnknownJob):
        queued_dispatcher.submit("send-newsletter", {})
    assert recording_queue.calls == []


def test_run_job_unknown_name():
    with pytest.raises(UnknownJob):
        run_job("nope", {})


def test_outcome_as_dict(queued_dispatcher):
    outcome = queued_dispatcher.submit("refresh-materialized-views", {})
    assert outcome.as_dict() == {
        "job_name": "refresh-materialized-views", "queued": True, "task_id": "task-1", "result": None
    }


# ============================================================
# HANDLERS
# ============================================================

def test_export_registrations_csv(seed, tmp_path, monkeypatch):
    monkeypatch.setattr(get_settings(), "uploads_dir", str(tmp_path))
    monkeypatch.setattr(get_settings(), "exports_dir", str(tmp_path / "exports"))
    drive_id = seed.drive(status="posted", auto_published=True)
    sid = seed.student(name="Asha")
    seed.eligible(drive_id, sid)
    with get_db_session() as db:
        registration_service.register(db, drive_id, sid)

    result = run_job("export-registrations-csv", {"drive_id": drive_id})

    assert result["rows"] == 1
    assert result["path"].startswith(f"/uploads/exports/student-list-drive-{drive_id}-")
    with open(result["filepath"], newline="", encoding="utf-8") as f:
        lines = list(csv.reader(f))
    assert lines[0] == ["Name", "Email", "Registered At"]
    assert lines[1][0] == "Asha"


def test_export_outside_uploads_is_not_served(seed, tmp_path, monkeypatch):
    monkeypatch.setattr(get_settings(), "uploads_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr(get_settings(), "exports_dir", str(tmp_path / "elsewhere"))
    drive_id = seed.drive(status="posted")

    result = run_job("export-registrations-csv", {"drive_id": drive_id})

    assert result["path"] is None
    assert result["rows"] == 0


def test_eligibility_filter_for_deleted_drive(seed, query):
    seed.student(cgpa=9)
    payload = {"drive_id": 999, "min_cgpa": 0, "min_10th": 0, "min_12th": 0, "max_backlogs": 0, "filtered_by": None}

    result = run_job("eligibility-filter", payload)

    assert result["skipped"] == "Drive not found"
    assert result["eligible_count"] == 0
    assert query("SELECT * FROM drive_eligibility_results") == []


def test_refresh_views_skipped_outside_postgres():
    assert run_job("refresh-materialized-views", {}) == {"refreshed": False}


# ============================================================
# CELERY TASKS
# ============================================================

class Retry(Exception):
    pass


def _fake_task(retries, job_name="auto-publish"):
    calls = []

    def retry(exc, countdown, max_retries):
        calls.append({"exc": exc, "countdown": countdown, "max_retries": max_retries})
        return Retry()

    task = SimpleNamespace(job_name=job_name, request=SimpleNamespace(retries=retries), retry=retry)
    return task, calls


def _failing_run_job(monkeypatch):
    def fail(name, payload):
        raise RuntimeError("db down")
    monkeypatch.setattr(tasks, "run_job", fail)


def test_task_retries_with_linear_backoff(monkeypatch):
    _failing_run_job(monkeypatch)
    task, calls = _fake_task(retries=1)

    with pytest.raises(Retry):
        tasks._execute(task, {"drive_id": 1}, attempts=3)

    backoff = get_settings().job_retry_backoff_seconds
    assert calls[0]["countdown"] == backoff * 2
    assert calls[0]["max_retries"] == 2


def test_task_gives_up_on_last_attempt(monkeypatch):
    _failing_run_job(monkeypatch)
    task, calls = _fake_task(retries=2)

    with pytest.raises(RuntimeError):
        tasks._execute(task, {"drive_id": 1}, attempts=3)
    assert calls == []


def test_task_success_returns_handler_result(monkeypatch):
    monkeypatch.setattr(tasks, "run_job", lambda name, payload: {"name": name, **payload})
    task, _ = _fake_task(retries=0, job_name="eligibility-filter")

    assert tasks._execute(task, {"drive_id": 4}, attempts=3) == {"name": "eligibility-filter", "drive_id": 4}


def test_final_failure_is_dead_lettered(monkeypatch, dead_letter_service):
    monkeypatch.setattr(tasks, "get_dead_letter_service", lambda: dead_letter_service)

    tasks.auto_publish.on_failure(
        RuntimeError("db down"), "celery-123", (), {"payload": {"drive_id": 8}, "attempts": 3}, None
    )

    docs = dead_letter_service.list_jobs()
    assert len(docs) == 1
    assert docs[0]["task_id"] == "celery-123"
    assert docs[0]["job_name"] == "auto-publish"
    assert docs[0]["payload"] == {"drive_id": 8}
    assert docs[0]["error"] == "RuntimeError: db down"


def test_every_job_has_a_task():
    assert set(tasks.TASKS) == set(JOB_HANDLERS)
    assert tasks.TASKS["refresh-materialized-views"].name == "placement_portal.jobs.refresh-materialized-views"
