"""Background workers."""

from framerate.application.workers.entry_metadata_worker import (
    BACKOFF_OUTCOMES,
    EntryMetadataSyncWorker,
    TickOutcome,
    create_entry_metadata_worker,
)
from framerate.application.workers.orchestrator import (
    WorkerInfo,
    WorkerOrchestrator,
    WorkerState,
    get_orchestrator,
    reset_orchestrator,
)

__all__ = [
    "BACKOFF_OUTCOMES",
    "EntryMetadataSyncWorker",
    "TickOutcome",
    "WorkerInfo",
    "WorkerOrchestrator",
    "WorkerState",
    "create_entry_metadata_worker",
    "get_orchestrator",
    "reset_orchestrator",
]
