from fastapi import Request

from .errors import NotFoundError
from .services.lifecycle import LifecycleController


def get_controller(request: Request) -> LifecycleController:
    return request.app.state.controller


def known_resource(resource: str, request: Request) -> str:
    """Path dependency rejecting resource types no plugin provides."""

    if not request.app.state.controller.registry.has_resource(resource):
        raise NotFoundError(f"Resource '{resource}' not found")
    return resource
