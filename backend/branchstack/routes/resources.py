from fastapi import APIRouter, Depends

from .. import schemas
from ..dependencies import get_controller
from ..services.lifecycle import LifecycleController

router = APIRouter(tags=["resources"])


@router.get("/resources", response_model=list[schemas.ResourceOut])
def list_resources(controller: LifecycleController = Depends(get_controller)):
    return [
        schemas.ResourceOut(type=resource.type, strategies=list(resource.strategies))
        for resource in controller.registry.resources()
    ]
