"""Lifecycle controller: create/delete requests and reads for branches."""

from __future__ import annotations

import logging
from typing import Any, Callable

from prometheus_client import Counter
from sqlalchemy.orm import Session, sessionmaker

from .. import eventlog, models, schemas
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import BranchStatus
from ..strategies import StrategyRegistry
from ..tasks import TaskOrchestrator
from . import branches

# purpose: decide which lifecycle events to append and hand provisioning work to the orchestrator
# inputs: request fields from the HTTP layer, a request-scoped session for synchronous reads/writes
# outputs: schemas.BranchOut as persisted at request time; task outcomes land in the event log
# status: active
# depends_on: branchstack.services.branches, branchstack.eventlog, branchstack.tasks, branchstack.strategies

logger = logging.getLogger(__name__)

PROVISIONING_TOTAL = Counter(
    "branch_provisioning_total",
    "Finished provisioning operations",
    ["operation", "outcome"],
)


class LifecycleController:
    """Entry point for every branch lifecycle operation.

    Synchronous work (validation, conflict checks, ``requested`` and
    ``deactivating`` events) uses the caller's session. Provisioning runs in
    the orchestrator and opens its own sessions from ``session_factory``.
    """

    def __init__(
        self,
        registry: StrategyRegistry,
        orchestrator: TaskOrchestrator,
        session_factory: sessionmaker,
    ) -> None:
        self.registry = registry
        self.orchestrator = orchestrator
        self.session_factory = session_factory

    def request_create(
        self,
        db: Session,
        name: str | None,
        parent: str | None,
        resource: str,
        strategy: str | None,
        configuration: dict[str, Any] | None = None,
    ) -> schemas.BranchOut:
        """Record a create request and schedule provisioning.

        Returns the branch in ``requested`` status without waiting for the
        provisioning outcome.
        """

        for field, value in (("name", name), ("parent", parent), ("strategy", strategy)):
            if not value:
                raise ValidationError(f"The '{field}' property is missing from the request body")

        existing = branches.get(db, name, resource)
        if existing is not None:
            if existing.status != BranchStatus.inactive:
                logger.info(
                    "Rejecting create for %s/%s in status %s", resource, name, existing.status.value
                )
                raise ConflictError(f"Branch '{name}' already exists for Resource '{resource}'")
            fields = schemas.BranchUpdate(
                parent=parent,
                strategy=strategy,
                configuration=configuration,
                status=BranchStatus.requested,
            )
            branch = branches.update(db, name, resource, fields)
            logger.info("Recycled inactive branch %s/%s from '%s'", resource, name, parent)
        else:
            branch = branches.create(db, name, parent, resource, strategy, configuration)
            logger.info("Requested branch %s/%s from '%s'", resource, name, parent)

        # the branch stays in 'requested' when the strategy is unknown
        create = self.registry.lookup(resource, strategy, "create")

        self._schedule(
            name,
            resource,
            operation="create",
            run=lambda: create(name, branch.parent, branch.configuration),
            start_status=BranchStatus.activating,
            success_status=BranchStatus.active,
        )
        return branch

    def request_delete(self, db: Session, name: str, resource: str) -> schemas.BranchOut:
        """Record a delete request and schedule deprovisioning.

        Deleting an ``inactive`` branch returns it unchanged.
        """

        branch = branches.get(db, name, resource)
        if branch is None:
            raise NotFoundError(f"Branch '{name}' not found")
        if branch.status == BranchStatus.inactive:
            logger.info("Branch %s/%s is already inactive", resource, name)
            return branch

        delete = self.registry.lookup(resource, branch.strategy, "delete")

        eventlog.append(db, name, resource, BranchStatus.deactivating)
        configuration = branch.configuration
        self._schedule(
            name,
            resource,
            operation="delete",
            run=lambda: delete(name, configuration),
            start_status=None,
            success_status=BranchStatus.inactive,
        )
        logger.info("Deactivating branch %s/%s", resource, name)
        return branch.model_copy(update={"status": BranchStatus.deactivating})

    def get_branch(self, db: Session, name: str, resource: str) -> schemas.BranchOut:
        branch = branches.get(db, name, resource)
        if branch is None:
            raise NotFoundError(f"Branch '{name}' not found")
        return branch

    def list_branches(self, db: Session, resource: str | None = None) -> list[schemas.BranchOut]:
        return branches.list_branches(db, resource)

    def history(self, db: Session, name: str, resource: str) -> list[models.Event]:
        """Return the branch's events oldest first; unknown branches raise ``NotFoundError``."""

        self.get_branch(db, name, resource)
        return eventlog.history(db, name, resource)

    def _schedule(
        self,
        name: str,
        resource: str,
        *,
        operation: str,
        run: Callable[[], None],
        start_status: BranchStatus | None,
        success_status: BranchStatus,
    ) -> None:
        def task() -> None:
            db = self.session_factory()
            try:
                try:
                    if start_status is not None:
                        eventlog.append(db, name, resource, start_status)
                    run()
                    eventlog.append(db, name, resource, success_status)
                except Exception as exc:
                    message = str(exc) or f"Failed to {operation} branch {name}"
                    logger.warning("Failed to %s branch %s/%s: %s", operation, resource, name, message)
                    PROVISIONING_TOTAL.labels(operation, "error").inc()
                    eventlog.append(db, name, resource, BranchStatus.error, message)
                else:
                    PROVISIONING_TOTAL.labels(operation, "success").inc()
                    logger.info("Branch %s/%s is %s", resource, name, success_status.value)
            finally:
                db.close()

        self.orchestrator.submit(task, key=(name, resource))
