"""
Dead-letter store tests (mongomock).
"""

import pytest

from placement_portal.core.exceptions import NotFound


def test_record_and_list(dead_letter_service):
    doc_id = dead_letter_service.record(
        task_id="t-1", job_name="eligibility-filter", payload={"drive_id": 3},
        attempts=3, error="ValueError: bad criteria"
    )

    docs = dead_letter_service.list_jobs()
    assert [d["_id"] for d in docs] == [doc_id]
    assert docs[0]["status"] == "open"
    assert docs[0]["retry_task_id"] is None


def test_same_task_recorded_once(dead_letter_service):
    first = dead_letter_service.record("t-1", "auto-publish", {"drive_id": 1}, 3, "RuntimeError: a")
    second = dead_letter_service.record("t-1", "auto-publish", {"drive_id": 1}, 3, "RuntimeError: b")

    assert first == second
    docs = dead_letter_service.list_jobs()
    assert len(docs) == 1
    assert docs[0]["error"] == "RuntimeError: b"


def test_mark_retried_moves_out_of_open(dead_letter_service):
    doc_id = dead_letter_service.record("t-9", "export-registrations-csv", {"drive_id": 2}, 3, "OSError: disk full")

    assert dead_letter_service.mark_retried(doc_id, "t-10") is True

    assert dead_letter_service.list_jobs() == []
    retried = dead_letter_service.list_jobs(status="retried")
    assert retried[0]["retry_task_id"] == "t-10"
    assert retried[0]["retried_at"] is not None
    assert len(dead_letter_service.list_jobs(status=None)) == 1


def test_get_unknown_or_malformed_id(dead_letter_service):
    with pytest.raises(NotFound):
        dead_letter_service.get("not-an-object-id")
    with pytest.raises(NotFound):
        dead_letter_service.get("0123456789abcdef01234567")
