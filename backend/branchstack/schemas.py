"""Request and response models for the branch lifecycle API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import BranchStatus


class BranchCreate(BaseModel):
    """Body of a create request; presence of the required fields is checked by the controller."""

    name: str | None = None
    parent: str | None = None
    strategy: str | None = None
    configuration: dict[str, Any] | None = None


class BranchUpdate(BaseModel):
    """Fields that may be overwritten when a branch is recycled into a new lifecycle."""

    parent: str | None = None
    strategy: str | None = None
    configuration: dict[str, Any] | None = None
    status: BranchStatus | None = None


class BranchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    parent: str
    resource: str
    strategy: str
    configuration: dict[str, Any] | None = None
    status: BranchStatus


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    branch: str
    resource: str
    status: BranchStatus
    message: str | None = None
    timestamp: datetime


class ResourceOut(BaseModel):
    type: str
    strategies: list[str] = Field(default_factory=list)
