"""FastAPI application factory and uvicorn entry point."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import uvicorn
from fastapi import FastAPI

from framerate import __version__
from framerate.api.routers import health
from framerate.infrastructure.lifecycle import lifespan as default_lifespan

Lifespan = Callable[[FastAPI], AbstractAsyncContextManager[Any]]


def create_app(lifespan: Lifespan | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        lifespan: Lifespan override (tests pass one without workers)
    """
    app = FastAPI(
        title="Framerate Entry Sync",
        version=__version__,
        lifespan=lifespan or default_lifespan,
    )
    app.include_router(health.router, prefix="/health", tags=["Health"])
    return app


def run() -> None:
    """Console entry point."""
    uvicorn.run("framerate.api.main:create_app", factory=True, host="0.0.0.0", port=8000)
