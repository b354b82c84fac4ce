import pytest

from branchstack import eventlog, models, schemas
from branchstack.errors import ConflictError, NotFoundError
from branchstack.models import BranchStatus
from branchstack.services import branches


def test_create_persists_row_and_requested_event(db):
    branch = branches.create(db, "feature-a", "main", "pg", "dbDumpRestore", {"connectionString": "x"})
    assert branch.status is BranchStatus.requested
    assert branch.configuration == {"connectionString": "x"}
    assert [e.status for e in eventlog.history(db, "feature-a", "pg")] == ["requested"]


def test_create_duplicate_key_is_conflict(db):
    branches.create(db, "feature-a", "main", "pg", "dbDumpRestore")
    with pytest.raises(ConflictError):
        branches.create(db, "feature-a", "main", "pg", "dbDumpRestore")
    assert len(eventlog.history(db, "feature-a", "pg")) == 1


def test_same_name_on_another_resource_is_a_different_branch(db):
    branches.create(db, "feature-a", "main", "pg", "dbDumpRestore")
    other = branches.create(db, "feature-a", "main", "mysql", "snapshot")
    assert other.resource == "mysql"
    assert branches.get(db, "feature-a", "mysql").strategy == "snapshot"


def test_get_derives_status_from_latest_event(db):
    branches.create(db, "feature-a", "main", "pg", "dbDumpRestore")
    eventlog.append(db, "feature-a", "pg", BranchStatus.activating)
    assert branches.get(db, "feature-a", "pg").status is BranchStatus.activating
    eventlog.append(db, "feature-a", "pg", BranchStatus.error, "disk full")
    assert branches.get(db, "feature-a", "pg").status is BranchStatus.error


def test_branch_without_events_is_absent(db):
    db.add(models.Branch(name="orphan", parent="main", resource="pg", strategy="dbDumpRestore"))
    db.commit()
    assert branches.get(db, "orphan", "pg") is None
    assert [b.name for b in branches.list_branches(db)] == []


def test_list_filters_by_resource(db):
    branches.create(db, "b", "main", "pg", "dbDumpRestore")
    branches.create(db, "a", "main", "pg", "dbDumpRestore")
    branches.create(db, "c", "main", "mysql", "snapshot")
    eventlog.append(db, "a", "pg", BranchStatus.activating)

    listed = branches.list_branches(db, "pg")
    assert [(b.name, b.status) for b in listed] == [
        ("a", BranchStatus.activating),
        ("b", BranchStatus.requested),
    ]
    assert {b.resource for b in branches.list_branches(db)} == {"pg", "mysql"}


def test_update_coalesces_missing_fields(db):
    branches.create(db, "feature-a", "main", "pg", "dbDumpRestore", {"connectionString": "x"})
    eventlog.append(db, "feature-a", "pg", BranchStatus.inactive)

    updated = branches.update(db, "feature-a", "pg", schemas.BranchUpdate(parent="release"))
    assert updated.parent == "release"
    assert updated.strategy == "dbDumpRestore"
    assert updated.configuration == {"connectionString": "x"}
    assert updated.status is BranchStatus.requested
    assert [e.status for e in eventlog.history(db, "feature-a", "pg")] == [
        "requested",
        "inactive",
        "requested",
    ]


def test_update_appends_given_status(db):
    branches.create(db, "feature-a", "main", "pg", "dbDumpRestore")
    updated = branches.update(
        db,
        "feature-a",
        "pg",
        schemas.BranchUpdate(strategy="diskFull", status=BranchStatus.deactivating),
    )
    assert updated.strategy == "diskFull"
    assert branches.get(db, "feature-a", "pg").status is BranchStatus.deactivating


def test_update_unknown_branch(db):
    with pytest.raises(NotFoundError):
        branches.update(db, "missing", "pg", schemas.BranchUpdate(parent="main"))
