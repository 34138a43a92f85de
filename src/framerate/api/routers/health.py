# Hey future me - this router is what Docker/Kubernetes probes hit!
#
# - GET /health          → database ping + "are the sync loops alive", 503 only when both fail
# - GET /health/workers  → the orchestrator's full status (ticks, last outcome, next run, ...)
#
# A loop sitting in its 24h backoff is still RUNNING. Backing off is normal operation, so only
# a dead task or a failed stop turns the workers check red.
"""Health check endpoints."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from framerate import __version__

router = APIRouter()


class HealthStatus(BaseModel):
    """Body of GET /health."""

    status: str = Field(description="healthy, degraded or unhealthy")
    timestamp: str = Field(description="When the check ran (ISO 8601, UTC)")
    version: str = Field(default=__version__, description="framerate version")
    uptime_seconds: float | None = Field(
        default=None, description="Seconds since the lifespan finished starting up"
    )
    checks: dict[str, Any] = Field(default_factory=dict, description="Per-component results")


async def _check_database(db: Any) -> dict[str, Any]:
    if db is None:
        return {"status": "error", "connected": False, "error": "Not initialized"}
    connected = await db.ping()
    return {"status": "ok" if connected else "error", "connected": connected}


def _check_workers(orchestrator: Any) -> dict[str, Any]:
    if orchestrator is None:
        return {"status": "error", "healthy": False, "error": "Orchestrator not initialized"}
    summary = orchestrator.get_status()
    healthy = orchestrator.is_healthy()
    return {
        "status": "ok" if healthy else "degraded",
        "healthy": healthy,
        "total": summary.get("total_workers", 0),
        "by_state": summary.get("by_state", {}),
    }


def _uptime(request: Request) -> float | None:
    started = getattr(request.app.state, "startup_time", None)
    if started is None:
        return None
    return (datetime.now(UTC) - started).total_seconds()


@router.get("", response_model=HealthStatus)
async def health_check(request: Request) -> JSONResponse:
    """Overall service health.

    Answers 200 when healthy or degraded (one of database/workers is down)
    and 503 when neither works.
    """
    state = request.app.state
    checks = {
        "database": await _check_database(getattr(state, "db", None)),
        "workers": _check_workers(getattr(state, "orchestrator", None)),
    }

    passing = sum(
        [checks["database"]["status"] == "ok", bool(checks["workers"]["healthy"])]
    )
    overall = {2: "healthy", 1: "degraded", 0: "unhealthy"}[passing]
    code = status.HTTP_503_SERVICE_UNAVAILABLE if passing == 0 else status.HTTP_200_OK

    body = HealthStatus(
        status=overall,
        timestamp=datetime.now(UTC).isoformat(),
        uptime_seconds=_uptime(request),
        checks=checks,
    )
    return JSONResponse(content=body.model_dump(), status_code=code)


@router.get("/workers")
async def worker_health(request: Request) -> dict[str, Any]:
    """Per-loop detail: state, tick counters, last outcome, last attempted id, next run."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        return {
            "status": "error",
            "error": "Orchestrator not initialized",
            "healthy": False,
            "workers": {},
        }

    detail = orchestrator.get_status()
    detail["healthy"] = orchestrator.is_healthy()
    return detail
