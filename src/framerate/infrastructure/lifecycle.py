"""FastAPI lifespan: bring up storage and the TMDb client, run the sync loops, tear down.

Startup order is logging, database (tables created when missing), TMDb
client, then one sync loop per enabled media type. Shutdown walks the same
list backwards.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from framerate.application.workers import (
    create_entry_metadata_worker,
    get_orchestrator,
)
from framerate.config import Settings, get_settings
from framerate.domain.entities import MediaType
from framerate.domain.ports import ICatalogLookup, IMediaEntryRepository
from framerate.infrastructure.integrations import (
    TMDbClient,
    TMDbMovieLookup,
    TMDbShowLookup,
)
from framerate.infrastructure.observability import configure_logging
from framerate.infrastructure.persistence import (
    Database,
    MovieEntryRepository,
    ShowEntryRepository,
)

logger = logging.getLogger(__name__)


def _worker_wiring(
    tmdb_client: TMDbClient,
) -> list[tuple[MediaType, Callable[[AsyncSession], IMediaEntryRepository], ICatalogLookup]]:
    return [
        (MediaType.MOVIE, MovieEntryRepository, TMDbMovieLookup(tmdb_client)),
        (MediaType.SHOW, ShowEntryRepository, TMDbShowLookup(tmdb_client)),
    ]


async def start_entry_sync_workers(
    app: FastAPI, settings: Settings, db: Database, tmdb_client: TMDbClient
) -> int:
    """Create, start and register the movie and show sync workers.

    Disabled workers (interval 0) are not created. Returns how many were started.
    """
    orchestrator = get_orchestrator()
    orchestrator.shutdown_timeout = settings.observability.shutdown_timeout
    app.state.orchestrator = orchestrator

    started = 0
    for media_type, repository_factory, catalog in _worker_wiring(tmdb_client):
        worker = create_entry_metadata_worker(
            media_type=media_type,
            settings=settings.entry_sync,
            session_factory=db.session_factory,
            repository_factory=repository_factory,
            catalog=catalog,
        )
        if worker is None:
            continue

        task = asyncio.create_task(worker.start(), name=worker.name)
        orchestrator.register_running_task(
            name=worker.name,
            task=task,
            worker=worker,
            category="sync",
            required=True,
        )
        setattr(app.state, f"{worker.name}_worker", worker)
        started += 1
    return started


# Listen future me, everything before `yield` runs at STARTUP, everything after runs at SHUTDOWN.
# The try/finally makes cleanup run even if startup crashes halfway. Order on the way out matters:
# workers first (they still hold sessions and the HTTP client), then TMDb client, then the engine.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Run the sync service for as long as the app is up."""
    settings = get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("%s starting", settings.app_name)

    db: Database | None = None
    tmdb_client: TMDbClient | None = None
    try:
        db = Database(settings.database)
        app.state.db = db
        await db.create_tables()
        logger.info("Entry tables ready at %s", settings.database.url)

        tmdb_client = TMDbClient(settings.tmdb)
        app.state.tmdb_client = tmdb_client
        if not settings.tmdb.access_token and not settings.tmdb.api_key:
            logger.warning("No TMDb credentials configured, catalog lookups will fail")

        started = await start_entry_sync_workers(app, settings, db, tmdb_client)

        app.state.startup_time = datetime.now(UTC)
        logger.info("Startup complete, %d sync worker(s) running", started)

        yield

    except Exception as e:
        logger.exception("Lifespan aborted: %s", e)
        raise
    finally:
        logger.info("%s shutting down", settings.app_name)

        orchestrator = getattr(app.state, "orchestrator", None)
        if orchestrator is not None:
            await orchestrator.stop_all()

        if tmdb_client is not None:
            try:
                await tmdb_client.close()
                logger.info("TMDb client closed")
            except Exception as e:
                logger.exception("Error closing TMDb client: %s", e)

        if db is not None:
            try:
                await db.close()
                logger.info("Database engine disposed")
            except Exception as e:
                logger.exception("Failed to dispose database engine: %s", e)
