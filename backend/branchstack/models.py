import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text

from .database import Base


class BranchStatus(str, enum.Enum):
    """Lifecycle states a branch moves through, as recorded by its events."""

    requested = "requested"
    activating = "activating"
    active = "active"
    deactivating = "deactivating"
    inactive = "inactive"
    error = "error"


class Branch(Base):
    __tablename__ = "branches"
    name = Column(String, primary_key=True)
    resource = Column(String, primary_key=True)
    parent = Column(String, nullable=False)
    strategy = Column(String, nullable=False)
    configuration = Column(JSON, nullable=True)


class Event(Base):
    __tablename__ = "events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    branch = Column(String, nullable=False)
    resource = Column(String, nullable=False)
    status = Column(String, nullable=False)
    message = Column(Text, nullable=True)
    timestamp = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_events_branch_resource_timestamp", "branch", "resource", "timestamp", "id"),
    )
