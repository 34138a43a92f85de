"""API routers."""

from framerate.api.routers import health

__all__ = ["health"]
