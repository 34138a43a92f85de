# Hey future me - this is the one place that knows which background loops are alive!
#
# lifecycle.py spawns the movie and show sync loops with asyncio.create_task(worker.start())
# and hands each task over here. The orchestrator never starts anything itself, it only:
# - notices tasks that died on their own (FAILED + exception text, or STOPPED if they returned)
# - stops everything in parallel at shutdown, cancelling loops that overstay shutdown_timeout
# - answers /health and /health/workers
#
# USAGE:
#   orchestrator = get_orchestrator()
#   task = asyncio.create_task(worker.start(), name=worker.name)
#   orchestrator.register_running_task(name=worker.name, task=task, worker=worker)
#   ...
#   await orchestrator.stop_all()
"""Bookkeeping and shutdown for the entry metadata sync loops."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Where a registered loop is in its life."""

    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


@runtime_checkable
class Worker(Protocol):
    """What the orchestrator needs from a loop: start it, stop it, describe it.

    stop() may return a coroutine, it is awaited in that case.
    """

    async def start(self) -> None: ...

    def stop(self) -> Any: ...

    def get_status(self) -> dict[str, Any]: ...


@dataclass
class WorkerInfo:
    """A registered loop together with the task driving it."""

    worker: Worker
    name: str
    task: asyncio.Task[None]
    category: str = "sync"
    required: bool = True  # a dead required loop turns /health unhealthy
    state: WorkerState = WorkerState.RUNNING
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    stopped_at: datetime | None = None
    error: str | None = None

    def mark(self, state: WorkerState, error: str | None = None) -> None:
        self.state = state
        if error is not None:
            self.error = error
        if state in (WorkerState.STOPPED, WorkerState.FAILED) and self.stopped_at is None:
            self.stopped_at = datetime.now(UTC)

    def sync_with_task(self) -> None:
        """Notice a task that finished while we still thought it RUNNING."""
        if self.state is not WorkerState.RUNNING or not self.task.done():
            return
        crash = None if self.task.cancelled() else self.task.exception()
        if crash is None:
            self.mark(WorkerState.STOPPED)
            return
        logger.error("Worker %s crashed: %s", self.name, crash)
        self.mark(WorkerState.FAILED, error=str(crash))

    def describe(self) -> dict[str, Any]:
        try:
            live = self.worker.get_status()
        except Exception as e:
            logger.debug("get_status() of %s raised: %s", self.name, e)
            live = {}
        return {
            "name": self.name,
            "category": self.category,
            "state": self.state.value,
            "required": self.required,
            "started_at": self.started_at.isoformat(),
            "stopped_at": self.stopped_at.isoformat() if self.stopped_at else None,
            "error": self.error,
            **live,
        }


@dataclass
class WorkerOrchestrator:
    """Registry of running sync loops with parallel, time-boxed shutdown."""

    shutdown_timeout: float = 10.0  # per loop: first for stop(), then for the task to end

    _workers: dict[str, WorkerInfo] = field(default_factory=dict)
    _shutting_down: bool = False

    def register_running_task(
        self,
        *,
        name: str,
        task: asyncio.Task[None],
        worker: Worker,
        category: str = "sync",
        required: bool = True,
    ) -> None:
        """Track a loop that is already running.

        Args:
            name: Key in status output, e.g. "movie_entry_metadata"
            task: The task awaiting ``worker.start()``
            worker: Loop instance, used for stop() and get_status()
            category: Grouping label in status output
            required: Whether the loop dying makes the service unhealthy
        """
        if name in self._workers:
            logger.warning("Worker '%s' registered twice, replacing the old entry", name)
        self._workers[name] = WorkerInfo(
            worker=worker, name=name, task=task, category=category, required=required
        )
        logger.debug("Tracking worker %s (category=%s, required=%s)", name, category, required)

    async def _shutdown_one(self, info: WorkerInfo) -> bool:
        info.mark(WorkerState.STOPPING)
        try:
            pending_stop = info.worker.stop()
            if asyncio.iscoroutine(pending_stop):
                await asyncio.wait_for(pending_stop, timeout=self.shutdown_timeout)
            if not info.task.done():
                await self._await_or_cancel(info)
        except Exception as e:
            logger.error("%s: shutdown failed - %s", info.name, e)
            info.mark(WorkerState.FAILED, error=str(e))
            return False
        info.mark(WorkerState.STOPPED)
        return True

    async def _await_or_cancel(self, info: WorkerInfo) -> None:
        try:
            await asyncio.wait_for(info.task, timeout=self.shutdown_timeout)
        except TimeoutError:
            logger.warning(
                "%s did not stop within %.1fs, cancelling", info.name, self.shutdown_timeout
            )
            info.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await info.task

    async def stop_all(self) -> None:
        """Stop every loop that is still running, all at once."""
        if self._shutting_down:
            logger.warning("stop_all() called while a shutdown is in progress")
            return

        self._shutting_down = True
        try:
            alive = []
            for info in self._workers.values():
                info.sync_with_task()
                if info.state is WorkerState.RUNNING:
                    alive.append(info)

            logger.info("Stopping %d worker(s)", len(alive))
            outcomes = await asyncio.gather(*(self._shutdown_one(info) for info in alive))
            failed = [info.name for info, ok in zip(alive, outcomes, strict=True) if not ok]
            if failed:
                logger.error("Workers that failed to stop cleanly: %s", ", ".join(failed))
            else:
                logger.info("All workers stopped")
        finally:
            self._shutting_down = False

    def get_status(self) -> dict[str, Any]:
        """Snapshot of every loop, merged with the loop's own get_status()."""
        workers: dict[str, dict[str, Any]] = {}
        for name, info in self._workers.items():
            info.sync_with_task()
            workers[name] = info.describe()

        counts = Counter(w["state"] for w in workers.values())
        return {
            "total_workers": len(workers),
            "shutting_down": self._shutting_down,
            "by_state": {state.value: counts.get(state.value, 0) for state in WorkerState},
            "workers": workers,
        }

    def get_worker(self, name: str) -> Worker | None:
        info = self._workers.get(name)
        return None if info is None else info.worker

    def is_healthy(self) -> bool:
        """True while every required loop is RUNNING.

        With both intervals set to 0 nothing is registered, which is healthy.
        """
        for info in self._workers.values():
            info.sync_with_task()
        return all(
            info.state is WorkerState.RUNNING
            for info in self._workers.values()
            if info.required
        )


_orchestrator: WorkerOrchestrator | None = None


def get_orchestrator() -> WorkerOrchestrator:
    """Process-wide orchestrator, created lazily."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = WorkerOrchestrator()
    return _orchestrator


def reset_orchestrator() -> None:
    """Forget the process-wide orchestrator. Tests call this between cases."""
    global _orchestrator
    _orchestrator = None
