"""Append-only lifecycle event log for branches."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import StorageError
from .models import BranchStatus

# purpose: persist and query the per-(branch, resource) lifecycle events that status is derived from
# inputs: SQLAlchemy session, branch name, resource type, status and optional failure message
# outputs: Event rows ordered by (timestamp, id)
# status: active

_clock_lock = threading.Lock()
_last_timestamp: datetime | None = None


def _next_timestamp() -> datetime:
    """Wall-clock time that never goes backwards within this process."""

    global _last_timestamp
    with _clock_lock:
        now = datetime.now(timezone.utc)
        if _last_timestamp is not None and now < _last_timestamp:
            now = _last_timestamp
        _last_timestamp = now
        return now


def append(
    db: Session,
    branch: str,
    resource: str,
    status: BranchStatus | str,
    message: str | None = None,
) -> models.Event:
    """Insert one event and return it with its assigned id and timestamp."""

    event = models.Event(
        branch=branch,
        resource=resource,
        status=BranchStatus(status).value,
        message=message,
        timestamp=_next_timestamp(),
    )
    try:
        db.add(event)
        db.commit()
        db.refresh(event)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f"Failed to record '{status}' event for branch '{branch}'") from exc
    return event


def _ordered(db: Session, branch: str, resource: str):
    return db.query(models.Event).filter(
        models.Event.branch == branch,
        models.Event.resource == resource,
    )


def latest(db: Session, branch: str, resource: str) -> models.Event | None:
    """Return the most recent event, ties on timestamp going to the highest id."""

    try:
        return (
            _ordered(db, branch, resource)
            .order_by(models.Event.timestamp.desc(), models.Event.id.desc())
            .first()
        )
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to read events for branch '{branch}'") from exc


def history(db: Session, branch: str, resource: str) -> list[models.Event]:
    """Return every event for the branch in the order it happened."""

    try:
        return (
            _ordered(db, branch, resource)
            .order_by(models.Event.timestamp.asc(), models.Event.id.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to read events for branch '{branch}'") from exc


def resolve_status(db: Session, branch: str, resource: str) -> BranchStatus | None:
    """Derive a branch's current status from its newest event.

    Always read from the log; ``None`` means the branch has no events and is
    therefore treated as absent.
    """

    event = latest(db, branch, resource)
    if event is None:
        return None
    return BranchStatus(event.status)
