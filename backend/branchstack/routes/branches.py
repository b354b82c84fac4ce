"""Branch lifecycle API routes."""

# purpose: expose create/read/delete of branches and their event history per resource type
# status: active

from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..dependencies import get_controller, known_resource
from ..services.lifecycle import LifecycleController

router = APIRouter(prefix="/{resource}/branches", tags=["branches"])


@router.post("", response_model=schemas.BranchOut)
def create_branch(
    body: schemas.BranchCreate | None = Body(default=None),
    resource: str = Depends(known_resource),
    db: Session = Depends(get_db),
    controller: LifecycleController = Depends(get_controller),
):
    body = body or schemas.BranchCreate()
    return controller.request_create(
        db,
        name=body.name,
        parent=body.parent,
        resource=resource,
        strategy=body.strategy,
        configuration=body.configuration,
    )


@router.get("", response_model=list[schemas.BranchOut])
def list_branches(
    resource: str = Depends(known_resource),
    db: Session = Depends(get_db),
    controller: LifecycleController = Depends(get_controller),
):
    return controller.list_branches(db, resource)


@router.get("/{name}", response_model=schemas.BranchOut)
def get_branch(
    name: str,
    resource: str = Depends(known_resource),
    db: Session = Depends(get_db),
    controller: LifecycleController = Depends(get_controller),
):
    return controller.get_branch(db, name, resource)


@router.delete("/{name}", response_model=schemas.BranchOut)
def delete_branch(
    name: str,
    resource: str = Depends(known_resource),
    db: Session = Depends(get_db),
    controller: LifecycleController = Depends(get_controller),
):
    return controller.request_delete(db, name, resource)


@router.get("/{name}/events", response_model=list[schemas.EventOut])
def list_branch_events(
    name: str,
    resource: str = Depends(known_resource),
    db: Session = Depends(get_db),
    controller: LifecycleController = Depends(get_controller),
):
    return controller.history(db, name, resource)
