"""Shared fixtures for entry sync tests."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from framerate.application.workers import reset_orchestrator
from framerate.config import DatabaseSettings
from framerate.domain.entities import MovieEntry, ShowEntry
from framerate.infrastructure.persistence import Database

# Hey future me - every test that deals with staleness uses this fixed "now" so that week/day
# arithmetic in assertions is exact. Never call datetime.now() inside an assertion.
FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """Fixed, timezone-aware reference time."""
    return FIXED_NOW


@pytest.fixture
def make_movie(now: datetime) -> Callable[..., MovieEntry]:
    """Factory for movie entries with sensible defaults."""

    def _make(**overrides: Any) -> MovieEntry:
        fields: dict[str, Any] = {
            "collection_id": "col-1",
            "user_id": "user-1",
            "movie_id": 42,
            "title": "Dune: Part Three",
            "last_checked_at": now,
            "status": "In Production",
        }
        fields.update(overrides)
        return MovieEntry(**fields)

    return _make


@pytest.fixture
def make_show(now: datetime) -> Callable[..., ShowEntry]:
    """Factory for show entries with sensible defaults."""

    def _make(**overrides: Any) -> ShowEntry:
        fields: dict[str, Any] = {
            "collection_id": "col-1",
            "user_id": "user-1",
            "show_id": 1399,
            "name": "Severance",
            "last_checked_at": now,
            "status": "Returning Series",
        }
        fields.update(overrides)
        return ShowEntry(**fields)

    return _make


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """File-backed SQLite database with all entry tables created.

    A file (not :memory:) so that every session sees the same data.
    """
    db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture(autouse=True)
def _fresh_orchestrator() -> None:
    """The orchestrator is a process-wide singleton; start every test with a new one."""
    reset_orchestrator()
