"""Application services."""

from framerate.application.services.entry_refresh_service import EntryRefreshService

__all__ = ["EntryRefreshService"]
