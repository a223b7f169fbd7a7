from __future__ import annotations

import json

import pytest
from sqlalchemy.exc import OperationalError

from app.core.metric_registry import REQUIRED_VIDEO_COLUMNS
from app.models.reconciliation_models import OutcomeStatus
from app.reconciliation.applier import (
    BulkUpdateRequestError,
    build_assignments,
    ensure_video_columns,
    execute_bulk_update,
)
from app.storage.video_repository import StorageFailureError

from conftest import OTHER_USER, USER


def test_migration_is_idempotent(repo):
    first = ensure_video_columns(repo)
    columns_after_first = repo.existing_columns()
    second = ensure_video_columns(repo)

    assert set(first) == set(REQUIRED_VIDEO_COLUMNS) - {"video_type"}
    assert second == []
    assert repo.existing_columns() == columns_after_first


def test_migration_keeps_existing_data(repo, videos):
    ensure_video_columns(repo)
    row = repo.get(videos["hook"], USER)
    assert row["views"] == 1000
    assert row["name"] == "Hook Test A"


def test_build_assignments_merges_blob():
    assignments = build_assignments({"views": 5}, {"notes": "new"}, {"notes": "old", "k": 1})
    assert assignments["views"] == 5
    assert json.loads(assignments["metrics_json"]) == {"notes": "new", "k": 1}
    assert build_assignments({"views": 5}, {}, {"k": 1}) == {"views": 5}


def test_bulk_update_applies_and_reports(repo, videos):
    body = {
        "updates": [
            {"video_id": videos["hook"], "fields": {"views": "1500", "initiatest": 4}},
            {"session_id": "SESS-2", "fields": {"clicks": 9, "video_type": "Paid"}},
            {"record_name": "third cut", "fields": {"bogus": 1}},
            {"video_name": "Nowhere", "fields": {"views": 1}},
        ]
    }
    response = execute_bulk_update(repo, USER, body)

    assert response.ok is True
    assert [r.status for r in response.results] == [
        OutcomeStatus.UPDATED,
        OutcomeStatus.UPDATED,
        OutcomeStatus.INVALID,
        OutcomeStatus.NOT_FOUND,
    ]
    assert response.summary.model_dump() == {
        "received": 4,
        "valid": 3,
        "matched": 2,
        "updated": 2,
        "skipped": 2,
    }

    hook = repo.get(videos["hook"], USER)
    assert hook["views"] == 1500
    assert hook["clicks"] == 50
    assert json.loads(hook["metrics_json"]) == {"initiatest": 4, "notes": "seed"}

    live = repo.get(videos["live"], USER)
    assert live["clicks"] == 9
    assert live["video_type"] == "paid"


def test_updates_are_scoped_to_user(repo, videos):
    response = execute_bulk_update(
        repo, USER, {"updates": [{"session_id": "sess-1", "fields": {"views": 7}}]}
    )
    assert response.results[0].matched_video_id == videos["hook"]

    foreign = repo.get(videos["foreign"], OTHER_USER)
    assert foreign["views"] == 0


def test_foreign_video_id_is_not_found(repo, videos):
    response = execute_bulk_update(
        repo, USER, {"updates": [{"video_id": videos["foreign"], "fields": {"views": 7}}]}
    )
    assert response.results[0].status == OutcomeStatus.NOT_FOUND


def test_dry_run_writes_nothing(repo, videos):
    response = execute_bulk_update(
        repo,
        USER,
        {"updates": [{"video_id": videos["hook"], "fields": {"views": 1}}]},
        dry_run=True,
    )
    assert response.dry_run is True
    assert response.results[0].status == OutcomeStatus.WILL_UPDATE
    assert repo.get(videos["hook"], USER)["views"] == 1000


@pytest.mark.parametrize("body", [{}, {"updates": "nope"}, [], None])
def test_malformed_body_raises(repo, body):
    with pytest.raises(BulkUpdateRequestError):
        execute_bulk_update(repo, USER, body)


def test_storage_failure_rolls_back_everything(repo, videos, monkeypatch):
    original_update = repo.update
    calls = []

    def flaky_update(video_id, user_id, assignments):
        calls.append(video_id)
        if len(calls) == 2:
            raise OperationalError("UPDATE videos", {}, Exception("disk I/O error"))
        original_update(video_id, user_id, assignments)

    monkeypatch.setattr(repo, "update", flaky_update)

    body = {
        "updates": [
            {"video_id": videos["hook"], "fields": {"views": 1}},
            {"video_id": videos["live"], "fields": {"views": 2}},
        ]
    }
    with pytest.raises(StorageFailureError):
        execute_bulk_update(repo, USER, body)

    assert len(calls) == 2
    assert repo.get(videos["hook"], USER)["views"] == 1000
    assert repo.get(videos["live"], USER)["views"] == 0


def test_out_of_range_integer_is_invalid_not_a_storage_error(repo, videos):
    body = {
        "updates": [
            {"video_id": videos["hook"], "fields": {"views": 2**70}},
            {"video_id": videos["live"], "fields": {"views": 9}},
        ]
    }
    response = execute_bulk_update(repo, USER, body)

    assert response.results[0].status == OutcomeStatus.INVALID
    assert response.results[0].reason == "invalid_number:views"
    assert response.results[1].status == OutcomeStatus.UPDATED
    assert repo.get(videos["hook"], USER)["views"] == 1000
    assert repo.get(videos["live"], USER)["views"] == 9


def test_driver_overflow_becomes_storage_failure(repo, videos):
    with pytest.raises(StorageFailureError):
        with repo.transaction():
            repo.update(videos["hook"], USER, {"views": 2**70})

    assert repo.get(videos["hook"], USER)["views"] == 1000


def test_delete_is_scoped_to_owner(repo, videos):
    with repo.transaction():
        repo.delete(videos["foreign"], USER)
        repo.delete(videos["third"], USER)

    assert repo.get(videos["third"], USER) is None
    assert repo.get(videos["foreign"], OTHER_USER) is not None
    assert [row["id"] for row in repo.select_for_user(USER)] == [videos["hook"], videos["live"]]
