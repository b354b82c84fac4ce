"""Strategy registry: resource type x strategy name -> provisioning operations."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from importlib import import_module
from typing import Callable, Iterable, Mapping

from ..errors import UnsupportedStrategyError

logger = logging.getLogger(__name__)

DEFAULT_PLUGINS = "branchstack.strategies.postgres"

# create(target, template, configuration) and delete(target, configuration)
CreateOperation = Callable[..., None]
DeleteOperation = Callable[..., None]

OPERATIONS = ("create", "delete")


@dataclass(frozen=True)
class Strategy:
    """A pair of provisioning operations for one way of branching a resource."""

    create: CreateOperation
    delete: DeleteOperation


@dataclass(frozen=True)
class Resource:
    """A resource type and the strategies a plugin offers for it."""

    type: str
    strategies: Mapping[str, Strategy] = field(default_factory=dict)


class StrategyRegistry:
    """Static lookup table of provisioning operations, resolved at call time."""

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._resources: dict[str, Resource] = {}
        for resource in resources:
            self.register(resource)

    @classmethod
    def from_modules(cls, module_paths: Iterable[str]) -> "StrategyRegistry":
        """Build a registry from plugin modules that each expose a ``resource``."""

        registry = cls()
        for path in module_paths:
            module = import_module(path)
            resource = getattr(module, "resource", None)
            if not isinstance(resource, Resource):
                raise TypeError(f"Plugin module '{path}' does not expose a Resource named 'resource'")
            registry.register(resource)
            logger.info(
                "Loaded plugin %s for resource '%s' (%s)",
                path,
                resource.type,
                ", ".join(sorted(resource.strategies)) or "no strategies",
            )
        return registry

    @classmethod
    def from_env(cls) -> "StrategyRegistry":
        paths = os.getenv("BRANCHSTACK_PLUGINS", DEFAULT_PLUGINS)
        return cls.from_modules(p.strip() for p in paths.split(",") if p.strip())

    def register(self, resource: Resource) -> None:
        if resource.type in self._resources:
            raise ValueError(f"Resource type '{resource.type}' is already registered")
        self._resources[resource.type] = resource

    def has_resource(self, resource_type: str) -> bool:
        return resource_type in self._resources

    def resources(self) -> list[Resource]:
        return list(self._resources.values())

    def lookup(self, resource_type: str, strategy_name: str, op: str) -> Callable[..., None]:
        """Return the ``create`` or ``delete`` operation for a strategy.

        Raises ``UnsupportedStrategyError`` when the resource type, strategy or
        operation is unknown.
        """

        if op not in OPERATIONS:
            raise ValueError(f"Unknown strategy operation '{op}'")
        resource = self._resources.get(resource_type)
        strategy = resource.strategies.get(strategy_name) if resource else None
        operation = getattr(strategy, op, None) if strategy else None
        if operation is None:
            raise UnsupportedStrategyError(
                f"Strategy '{strategy_name}' is not supported for this resource"
            )
        return operation
