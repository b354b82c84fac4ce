from datetime import datetime, timezone

import pytest

from branchstack import eventlog, models
from branchstack.errors import StorageError
from branchstack.models import BranchStatus


def test_append_assigns_id_and_timestamp(db):
    event = eventlog.append(db, "feature-a", "pg", BranchStatus.requested)
    assert event.id is not None
    assert event.timestamp is not None
    assert event.status == "requested"
    assert event.message is None


def test_append_rejects_unknown_status(db):
    with pytest.raises(ValueError):
        eventlog.append(db, "feature-a", "pg", "paused")


def test_latest_is_newest_event(db):
    eventlog.append(db, "feature-a", "pg", BranchStatus.requested)
    eventlog.append(db, "feature-a", "pg", BranchStatus.activating)
    eventlog.append(db, "feature-a", "pg", BranchStatus.active)
    assert eventlog.latest(db, "feature-a", "pg").status == "active"
    assert eventlog.resolve_status(db, "feature-a", "pg") is BranchStatus.active


def test_latest_breaks_timestamp_ties_by_id(db):
    stamp = datetime(2024, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
    for status in ("requested", "activating", "error"):
        db.add(models.Event(branch="tied", resource="pg", status=status, timestamp=stamp))
        db.commit()
    assert eventlog.latest(db, "tied", "pg").status == "error"
    assert [e.status for e in eventlog.history(db, "tied", "pg")] == [
        "requested",
        "activating",
        "error",
    ]


def test_latest_prefers_later_timestamp_over_insertion_order(db):
    later = datetime(2024, 1, 1, 12, 0, 1, tzinfo=timezone.utc)
    earlier = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    db.add(models.Event(branch="late", resource="pg", status="active", timestamp=later))
    db.commit()
    db.add(models.Event(branch="late", resource="pg", status="error", timestamp=earlier))
    db.commit()
    assert eventlog.resolve_status(db, "late", "pg") is BranchStatus.active


def test_history_is_scoped_to_branch_and_resource(db):
    eventlog.append(db, "shared", "pg", BranchStatus.requested)
    eventlog.append(db, "shared", "mysql", BranchStatus.requested)
    eventlog.append(db, "shared", "mysql", BranchStatus.error, "boom")
    eventlog.append(db, "other", "pg", BranchStatus.requested)

    mysql_history = eventlog.history(db, "shared", "mysql")
    assert [(e.status, e.message) for e in mysql_history] == [
        ("requested", None),
        ("error", "boom"),
    ]
    assert len(eventlog.history(db, "shared", "pg")) == 1


def test_history_and_status_for_unknown_branch(db):
    assert eventlog.history(db, "missing", "pg") == []
    assert eventlog.latest(db, "missing", "pg") is None
    assert eventlog.resolve_status(db, "missing", "pg") is None


def test_timestamps_never_go_backwards(db):
    events = [eventlog.append(db, "clock", "pg", BranchStatus.requested) for _ in range(20)]
    stamps = [e.timestamp for e in events]
    assert stamps == sorted(stamps)


def test_storage_failures_surface_as_storage_error(db, monkeypatch):
    from sqlalchemy.exc import OperationalError

    def broken_commit():
        raise OperationalError("insert", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(StorageError):
        eventlog.append(db, "feature-a", "pg", BranchStatus.requested)
