"""Branch metadata persistence composed with the event log."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import eventlog, models, schemas
from ..errors import ConflictError, NotFoundError, StorageError
from ..models import BranchStatus

# purpose: read and write branch rows, attaching the status derived from the event log
# inputs: SQLAlchemy session, branch identity (name, resource) and metadata fields
# outputs: schemas.BranchOut records carrying their derived status
# status: active
# depends_on: branchstack.eventlog


def _to_out(branch: models.Branch, status: BranchStatus | str) -> schemas.BranchOut:
    return schemas.BranchOut(
        name=branch.name,
        parent=branch.parent,
        resource=branch.resource,
        strategy=branch.strategy,
        configuration=branch.configuration,
        status=status,
    )


def _latest_status_column():
    """Correlated subquery selecting the newest event status for each branch row."""

    return (
        select(models.Event.status)
        .where(
            models.Event.branch == models.Branch.name,
            models.Event.resource == models.Branch.resource,
        )
        .order_by(models.Event.timestamp.desc(), models.Event.id.desc())
        .limit(1)
        .correlate(models.Branch)
        .scalar_subquery()
        .label("status")
    )


def get(db: Session, name: str, resource: str) -> schemas.BranchOut | None:
    """Return the branch with its derived status, or ``None`` when it has no events."""

    try:
        branch = db.get(models.Branch, (name, resource))
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to read branch '{name}'") from exc
    if branch is None:
        return None
    status = eventlog.resolve_status(db, name, resource)
    if status is None:
        return None
    return _to_out(branch, status)


def list_branches(db: Session, resource: str | None = None) -> list[schemas.BranchOut]:
    """Return every branch that has at least one event, optionally for one resource type."""

    query = db.query(models.Branch, _latest_status_column())
    if resource is not None:
        query = query.filter(models.Branch.resource == resource)
    try:
        rows = query.order_by(models.Branch.resource, models.Branch.name).all()
    except SQLAlchemyError as exc:
        raise StorageError("Failed to list branches") from exc
    return [_to_out(branch, status) for branch, status in rows if status is not None]


def create(
    db: Session,
    name: str,
    parent: str,
    resource: str,
    strategy: str,
    configuration: dict[str, Any] | None = None,
) -> schemas.BranchOut:
    """Insert branch metadata followed by its ``requested`` event.

    Uniqueness is left to the primary key: inserting an existing
    ``(name, resource)`` raises ``ConflictError``.
    """

    branch = models.Branch(
        name=name,
        parent=parent,
        resource=resource,
        strategy=strategy,
        configuration=configuration,
    )
    try:
        db.add(branch)
        db.commit()
        db.refresh(branch)
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"Branch '{name}' already exists for Resource '{resource}'") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f"Failed to create branch '{name}'") from exc

    event = eventlog.append(db, name, resource, BranchStatus.requested)
    return _to_out(branch, event.status)


def update(
    db: Session,
    name: str,
    resource: str,
    fields: schemas.BranchUpdate,
) -> schemas.BranchOut:
    """Overwrite the provided metadata fields, then append an event.

    Fields left as ``None`` keep their stored values. The appended event uses
    ``fields.status`` and defaults to ``requested``.
    """

    try:
        branch = db.get(models.Branch, (name, resource))
        if branch is None:
            raise NotFoundError(f"Branch '{name}' not found")
        if fields.parent is not None:
            branch.parent = fields.parent
        if fields.strategy is not None:
            branch.strategy = fields.strategy
        if fields.configuration is not None:
            branch.configuration = fields.configuration
        db.commit()
        db.refresh(branch)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f"Failed to update branch '{name}'") from exc

    event = eventlog.append(db, name, resource, fields.status or BranchStatus.requested)
    return _to_out(branch, event.status)
