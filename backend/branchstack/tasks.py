"""In-process task orchestration for long-running provisioning work."""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Hashable

from prometheus_client import Counter, Gauge

# purpose: run provisioning closures off the request path with per-branch ordering and graceful drain
# inputs: zero-argument callables, optional serialization key such as (branch, resource)
# outputs: side effects of the callables; failures are logged and never re-raised to callers
# status: active

logger = logging.getLogger(__name__)

Task = Callable[[], None]

DEFAULT_MAX_WORKERS = 32

TASKS_TOTAL = Counter("branch_tasks_total", "Finished orchestrator tasks", ["outcome"])
TASKS_IN_FLIGHT = Gauge("branch_tasks_in_flight", "Submitted tasks that have not finished")


def max_workers_from_env() -> int:
    value = os.getenv("BRANCHSTACK_TASK_WORKERS")
    return int(value) if value else DEFAULT_MAX_WORKERS


def _label(key: Hashable | None) -> str:
    return str(key) if key is not None else "unkeyed work"


class OrchestratorClosedError(RuntimeError):
    """Raised when work is submitted after shutdown has begun."""


class TaskOrchestrator:
    """Concurrent work queue with one in-flight task per key.

    Tasks sharing a key (for branches, ``(name, resource)``) run one after
    another in submission order; tasks with different keys, or without a key,
    run in parallel up to ``max_workers``. A task that raises is logged and
    counted, it never affects other tasks.
    """

    def __init__(self, max_workers: int | None = None) -> None:
        self.max_workers = max_workers or max_workers_from_env()
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="branchstack-task",
        )
        self._cond = threading.Condition()
        self._pending = 0
        self._waiting: dict[Hashable, deque[Task]] = {}
        self._accepting = True

    @property
    def pending(self) -> int:
        """Number of submitted tasks that have not finished yet."""

        with self._cond:
            return self._pending

    def submit(self, task: Task, key: Hashable | None = None) -> None:
        """Enqueue ``task``; returns immediately."""

        with self._cond:
            if not self._accepting:
                raise OrchestratorClosedError("Task orchestrator is shutting down")
            self._pending += 1
            TASKS_IN_FLIGHT.inc()
            logger.debug("Submitted task for %s (%d pending)", _label(key), self._pending)
            if key is None:
                self._dispatch(task, None)
            elif key in self._waiting:
                # another task for this key is running; run after it
                self._waiting[key].append(task)
                logger.debug("Queued task behind in-flight work for %s", key)
            else:
                self._waiting[key] = deque()
                self._dispatch(task, key)

    def _dispatch(self, task: Task, key: Hashable | None) -> None:
        self._executor.submit(self._run, task, key)

    def _run(self, task: Task, key: Hashable | None) -> None:
        logger.debug("Starting task for %s", _label(key))
        try:
            task()
        except Exception:
            TASKS_TOTAL.labels("failed").inc()
            logger.exception("Task for %s failed", _label(key))
        else:
            TASKS_TOTAL.labels("succeeded").inc()
            logger.debug("Finished task for %s", _label(key))
        finally:
            with self._cond:
                if key is not None:
                    waiting = self._waiting[key]
                    if waiting:
                        self._dispatch(waiting.popleft(), key)
                    else:
                        del self._waiting[key]
                self._pending -= 1
                TASKS_IN_FLIGHT.dec()
                self._cond.notify_all()

    def drain(self, timeout: float | None = None) -> bool:
        """Block until every submitted task has finished.

        Tasks submitted while draining are waited for too. Returns ``False``
        if ``timeout`` elapsed first.
        """

        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout=timeout)

    def shutdown(self) -> None:
        """Wait for in-flight tasks, stop accepting work, then release the workers.

        Running tasks may still submit follow-up work until the queue is idle.
        """

        pending = self.pending
        if pending:
            logger.info("Waiting for %d provisioning task(s) before shutdown", pending)
        self.drain()
        with self._cond:
            self._accepting = False
        self.drain()
        self._executor.shutdown(wait=True)
        logger.info("Task orchestrator stopped")
