"""
Drive lifecycle tests.

Covers:
1. Manual publish - queued path and inline fallback on the same transaction
2. Auto-calc publish - queued, inline, and a failing inline run
3. Duplicate / out-of-order auto-publish jobs
4. stop_registrations guards
5. Create, list visibility and delete
"""

import pytest
from sqlalchemy import text

from placement_portal.core.exceptions import NotFound, Forbidden, Conflict
from placement_portal.db.postgres import get_db_session
from placement_portal.jobs import handlers
from placement_portal.jobs.handlers import run_job
from placement_portal.models import DriveCriteria
from placement_portal.services import drive_service, registration_service, selection_service


def _selections(drive_id):
    with get_db_session() as db:
        return selection_service.list_selections(db, drive_id)


def _drive(drive_id):
    with get_db_session() as db:
        return drive_service.load_drive(db, drive_id)


# ============================================================
# MANUAL PUBLISH
# ============================================================

def test_manual_publish_queues_selection(seed, queued_dispatcher, recording_queue):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive()
    a, b, old = seed.student(), seed.student(), seed.student()
    seed.selected(drive_id, old)

    with get_db_session() as db:
        result = drive_service.publish_drive(db, drive_id, coordinator, [b, a], queued_dispatcher)

    assert result["dispatch"].queued is True
    assert result["dispatch"].task_id == "task-1"
    assert recording_queue.calls == [(
        "auto-publish",
        {"drive_id": drive_id, "published_by": coordinator, "selected_students": [b, a]},
        3,
    )]

    drive = _drive(drive_id)
    assert drive["status"] == "posted"
    assert drive["published_by"] == coordinator
    assert drive["published_at"] is not None
    assert not drive["auto_published"]
    # Cleared until the worker runs
    assert _selections(drive_id) == []

    run_job(*recording_queue.calls[0][:2])
    assert _selections(drive_id) == sorted([a, b])


def test_manual_publish_inline_when_queue_down(seed, fallback_dispatcher, down_queue):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive()
    a, b = seed.student(), seed.student()

    with get_db_session() as db:
        result = drive_service.publish_drive(db, drive_id, coordinator, [a, b], fallback_dispatcher)

    assert down_queue.attempts == 1
    outcome = result["dispatch"]
    assert outcome.queued is False
    assert outcome.task_id is None
    assert outcome.result == {"published": True, "drive_id": drive_id, "selected_count": 2}
    assert _drive(drive_id)["status"] == "posted"
    assert _selections(drive_id) == sorted([a, b])


def test_manual_publish_without_list_uses_eligibility(seed, fallback_dispatcher):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive(min_cgpa=8)
    good = seed.student(cgpa=8.5)
    seed.student(cgpa=7.0)

    with get_db_session() as db:
        drive_service.publish_drive(db, drive_id, coordinator, None, fallback_dispatcher)

    assert _selections(drive_id) == [good]


def test_manual_publish_empty_list_selects_nobody(seed, fallback_dispatcher):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive()
    old = seed.student()
    seed.selected(drive_id, old)

    with get_db_session() as db:
        drive_service.publish_drive(db, drive_id, coordinator, [], fallback_dispatcher)

    assert _selections(drive_id) == []
    assert _drive(drive_id)["status"] == "posted"


def test_manual_publish_missing_drive(queued_dispatcher, recording_queue):
    with pytest.raises(NotFound):
        with get_db_session() as db:
            drive_service.publish_drive(db, 404, 1, [1], queued_dispatcher)
    assert recording_queue.calls == []


def test_inline_failure_rolls_back_status_change(seed, fallback_dispatcher, monkeypatch):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive()
    a = seed.student()
    seed.selected(drive_id, a)

    def boom(db, payload):
        raise RuntimeError("selection write failed")

    monkeypatch.setitem(handlers.JOB_HANDLERS, "auto-publish", boom)

    with pytest.raises(RuntimeError, match="selection write failed"):
        with get_db_session() as db:
            drive_service.publish_drive(db, drive_id, coordinator, [a], fallback_dispatcher)

    assert _drive(drive_id)["status"] == "pending"
    assert _selections(drive_id) == [a]


def test_manual_publish_rejects_unknown_students(seed, queued_dispatcher, recording_queue):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive()
    a = seed.student()
    seed.selected(drive_id, a)

    with pytest.raises(NotFound, match="Unknown student ids: 424242"):
        with get_db_session() as db:
            drive_service.publish_drive(db, drive_id, coordinator, [a, 424242], queued_dispatcher)

    assert recording_queue.calls == []
    assert _drive(drive_id)["status"] == "pending"
    assert _selections(drive_id) == [a]


# ============================================================
# AUTO-CALC PUBLISH
# ============================================================

def test_auto_publish_queued(seed, queued_dispatcher, recording_queue):
    head = seed.user("HEAD")
    drive_id = seed.drive(min_cgpa=7)
    good = seed.student(cgpa=7.5)

    outcome = drive_service.start_auto_publish(drive_id, head, queued_dispatcher)

    assert outcome.queued is True
    drive = _drive(drive_id)
    assert drive["status"] == "posted"
    assert drive["auto_published"]
    assert recording_queue.calls[0][1] == {"drive_id": drive_id, "published_by": head}

    result = run_job("auto-publish", recording_queue.calls[0][1])
    assert result["selected_count"] == 1
    assert _selections(drive_id) == [good]


def test_auto_publish_inline_computes_eligibility(seed, fallback_dispatcher, query):
    head = seed.user("HEAD")
    drive_id = seed.drive(min_cgpa=7, max_backlogs=1)
    a = seed.student(cgpa=7.0, backlogs=1)
    seed.student(cgpa=9.0, backlogs=3)

    outcome = drive_service.start_auto_publish(drive_id, head, fallback_dispatcher)

    assert outcome.queued is False
    assert _selections(drive_id) == [a]
    eligible = query("SELECT student_id, filtered_by FROM drive_eligibility_results WHERE drive_id = :d", d=drive_id)
    assert eligible == [{"student_id": a, "filtered_by": None}]


def test_auto_publish_inline_failure_keeps_drive_posted(seed, fallback_dispatcher, monkeypatch):
    head = seed.user("HEAD")
    drive_id = seed.drive()

    def boom(db, payload):
        raise RuntimeError("evaluator crashed")

    monkeypatch.setitem(handlers.JOB_HANDLERS, "auto-publish", boom)

    assert drive_service.start_auto_publish(drive_id, head, fallback_dispatcher) is None
    drive = _drive(drive_id)
    assert drive["status"] == "posted"
    assert drive["auto_published"]


def test_duplicate_auto_publish_then_single_registration(seed):
    drive_id = seed.drive(status="posted")
    a, b = seed.student(), seed.student()
    seed.eligible(drive_id, a, b)
    payload = {"drive_id": drive_id, "published_by": None, "selected_students": [a, b]}

    first = run_job("auto-publish", payload)
    second = run_job("auto-publish", payload)

    assert first == second
    assert _selections(drive_id) == sorted([a, b])

    with get_db_session() as db:
        registration_service.register(db, drive_id, a)
    with pytest.raises(Conflict):
        with get_db_session() as db:
            registration_service.register(db, drive_id, a)
    with get_db_session() as db:
        assert len(registration_service.list_registrations_by_drive(db, drive_id)) == 1


def test_auto_publish_skips_drive_past_registrations(seed):
    drive_id = seed.drive(status="attending")
    a = seed.student()

    result = run_job("auto-publish", {"drive_id": drive_id, "published_by": None, "selected_students": [a]})

    assert result["published"] is False
    assert _drive(drive_id)["status"] == "attending"
    assert _selections(drive_id) == []


def test_auto_publish_for_deleted_drive():
    assert run_job("auto-publish", {"drive_id": 321, "published_by": None})["published"] is False


# ============================================================
# STOP REGISTRATIONS
# ============================================================

def test_stop_registrations_by_publisher(seed):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive(status="posted", published_by=coordinator)

    with get_db_session() as db:
        drive = drive_service.stop_registrations(db, drive_id, {"user_id": coordinator})

    assert drive["status"] == "attending"


def test_stop_registrations_other_coordinator_forbidden(seed):
    publisher = seed.user("COORDINATOR")
    other = seed.user("COORDINATOR")
    drive_id = seed.drive(status="posted", published_by=publisher)

    with pytest.raises(Forbidden):
        with get_db_session() as db:
            drive_service.stop_registrations(db, drive_id, {"user_id": other})
    assert _drive(drive_id)["status"] == "posted"


def test_stop_registrations_head_published_any_coordinator(seed, fallback_dispatcher):
    head = seed.user("HEAD")
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive()
    a = seed.student()

    with get_db_session() as db:
        drive_service.publish_drive(db, drive_id, head, [a], fallback_dispatcher)
    assert _drive(drive_id)["published_by"] == head

    with get_db_session() as db:
        assert drive_service.stop_registrations(db, drive_id, {"user_id": coordinator})["status"] == "attending"


def test_stop_registrations_auto_published_any_coordinator(seed):
    head = seed.user("HEAD")
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive(status="posted", auto_published=True, published_by=head)

    with get_db_session() as db:
        assert drive_service.stop_registrations(db, drive_id, {"user_id": coordinator})["status"] == "attending"


def test_stop_registrations_pending_forbidden(seed):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive(status="pending")

    with pytest.raises(Forbidden, match="not posted"):
        with get_db_session() as db:
            drive_service.stop_registrations(db, drive_id, {"user_id": coordinator})


def test_stop_registrations_attending_is_noop(seed):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive(status="attending", published_by=coordinator)

    with get_db_session() as db:
        assert drive_service.stop_registrations(db, drive_id, {"user_id": coordinator})["status"] == "attending"


def test_stop_registrations_finished_conflict(seed):
    coordinator = seed.user("COORDINATOR")
    drive_id = seed.drive(status="attending", published_by=coordinator)
    with get_db_session() as db:
        db.execute(text("UPDATE placement_drives SET attendance_published = TRUE WHERE drive_id = :d"), {"d": drive_id})

    with pytest.raises(Conflict):
        with get_db_session() as db:
            drive_service.stop_registrations(db, drive_id, {"user_id": coordinator})


def test_stop_registrations_missing_drive():
    with pytest.raises(NotFound):
        with get_db_session() as db:
            drive_service.stop_registrations(db, 77, {"user_id": 1})


# ============================================================
# CREATE / LIST / DELETE
# ============================================================

def test_create_drive_starts_pending(seed):
    head = seed.user("HEAD")

    with get_db_session() as db:
        drive = drive_service.create_drive(
            db,
            {
                "company_name": "Globex",
                "job_title": "Analyst",
                "criteria": DriveCriteria(min_cgpa=6.5, max_backlogs=2),
            },
            posted_by=head,
        )

    assert drive["status"] == "pending"
    assert drive["posted_by"] == head
    assert drive["min_cgpa"] == 6.5
    assert drive["max_backlogs"] == 2
    assert not drive["auto_published"]


def test_students_only_see_drives_past_pending(seed):
    pending = seed.drive(status="pending")
    posted = seed.drive(status="posted")
    attending = seed.drive(status="attending")

    with get_db_session() as db:
        student_view = {d["drive_id"] for d in drive_service.list_drives(db, "STUDENT")}
        head_view = {d["drive_id"] for d in drive_service.list_drives(db, "HEAD")}

    assert student_view == {posted, attending}
    assert head_view == {pending, posted, attending}


def test_delete_drive_cascades(seed, query):
    drive_id = seed.drive(status="posted")
    a = seed.student()
    seed.eligible(drive_id, a)
    seed.selected(drive_id, a)

    with get_db_session() as db:
        drive_service.delete_drive(db, drive_id)

    assert query("SELECT * FROM drive_eligibility_results") == []
    assert query("SELECT * FROM drive_coordinator_selections") == []
    with pytest.raises(NotFound):
        with get_db_session() as db:
            drive_service.delete_drive(db, drive_id)


def test_trigger_eligibility_uses_drive_criteria(seed):
    drive_id = seed.drive(min_12th=70)
    a = seed.student(twelfth=70)
    seed.student(twelfth=69)

    with get_db_session() as db:
        assert drive_service.trigger_eligibility(db, drive_id) == [a]
