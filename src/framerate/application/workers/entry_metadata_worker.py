"""Entry Metadata Sync Worker - keeps stored entry metadata in step with TMDb.

Hey future me - entries copy catalog data (poster, status, air dates) when a user adds them.
TMDb has no webhooks, so this worker POLLS: every tick it picks ONE stale entry, fetches the
current catalog data and writes it back. Two instances run side by side, one for movies, one
for shows. They only differ in StalenessPolicy, repository and catalog lookup.

One tick:
1. Selecting: ask the repository for the single stalest entry
2. Nothing stale -> back off (next tick pushed out by 24h)
3. Same external id as the previous attempt -> skip this tick (dedup guard)
4. New id -> remember it, fetch from the catalog
5. Fetch OK -> merge + persist, normal cadence
6. Fetch failed -> back off 24h, entry stays untouched

Storage failures (query or persist) back off the same way.

The dedup guard holds the last ATTEMPTED id and a skip leaves it alone: an id is only
looked up again once some other id has been attempted in between.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from framerate.application.services.entry_refresh_service import EntryRefreshService
from framerate.config import EntrySyncSettings
from framerate.domain.entities import MediaEntry, MediaType, MetadataSnapshot
from framerate.domain.ports import ICatalogLookup, IMediaEntryRepository
from framerate.domain.value_objects import StalenessPolicy
from framerate.infrastructure.observability import set_correlation_id

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_SECONDS = 86400

RepositoryFactory = Callable[[AsyncSession], IMediaEntryRepository]


class TickOutcome(str, Enum):
    """Result of a single worker tick."""

    NO_CANDIDATE = "no_candidate"
    SKIPPED = "skipped"
    REFRESHED = "refreshed"
    LOOKUP_FAILED = "lookup_failed"
    STORAGE_FAILED = "storage_failed"


# Outcomes that push the next wake-up out by the backoff window
BACKOFF_OUTCOMES = frozenset(
    {TickOutcome.NO_CANDIDATE, TickOutcome.LOOKUP_FAILED, TickOutcome.STORAGE_FAILED}
)


class EntryMetadataSyncWorker:
    """Periodically refreshes one stale entry per tick for a single media type.

    State (last attempted id, next deadline, counters) lives on the instance
    and is never shared between the movie and show workers. The loop is
    strictly sequential: at most one query, lookup or write is in flight.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_factory: RepositoryFactory,
        catalog: ICatalogLookup,
        policy: StalenessPolicy,
        interval_seconds: int,
        backoff_seconds: int = DEFAULT_BACKOFF_SECONDS,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            session_factory: Factory for creating DB sessions (one per step)
            repository_factory: Builds the entry repository for a session
            catalog: Catalog lookup for this media type
            policy: Staleness policy for this media type
            interval_seconds: Normal seconds between ticks, must be > 0
            backoff_seconds: Extra delay after an empty or failed tick
            clock: Returns the current aware datetime (tests inject a fake)
            sleep: Awaitable sleep (tests inject a fake)
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if catalog.media_type != policy.media_type:
            raise ValueError(
                f"Catalog for {catalog.media_type.value} cannot serve "
                f"{policy.media_type.value} policy"
            )

        self._session_factory = session_factory
        self._repository_factory = repository_factory
        self._catalog = catalog
        self._policy = policy
        self._interval = timedelta(seconds=interval_seconds)
        self._backoff = timedelta(seconds=backoff_seconds)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._sleep = sleep or self._sleep_until_stopped

        self._running = False
        self._stop_event = asyncio.Event()
        self._last_attempted_id: int | None = None
        self._next_run_at: datetime | None = None
        self._stats: dict[str, Any] = {
            "ticks": 0,
            "refreshed": 0,
            "skipped": 0,
            "no_candidate": 0,
            "lookup_failures": 0,
            "storage_failures": 0,
            "last_outcome": None,
            "last_tick_at": None,
            "last_error": None,
        }

    @property
    def media_type(self) -> MediaType:
        return self._policy.media_type

    @property
    def name(self) -> str:
        return f"{self.media_type.value}_entry_metadata"

    @property
    def last_attempted_id(self) -> int | None:
        return self._last_attempted_id

    @property
    def next_run_at(self) -> datetime | None:
        return self._next_run_at

    async def start(self) -> None:
        """Run the worker loop until stop() is called.

        The first tick fires immediately, later ticks follow the deadline
        computed by the previous tick.
        """
        self._running = True
        self._stop_event.clear()
        if self._next_run_at is None:
            self._next_run_at = self._clock()

        logger.info(
            "EntryMetadataSyncWorker[%s] started (interval=%ds, outdated_after=%s)",
            self.media_type.value,
            int(self._interval.total_seconds()),
            self._policy.outdated_after,
        )

        while self._running:
            delay = (self._next_run_at - self._clock()).total_seconds()
            if delay > 0:
                await self._sleep(delay)
            if not self._running:
                break
            await self.run_tick()

        logger.info("EntryMetadataSyncWorker[%s] stopped", self.media_type.value)

    def stop(self) -> None:
        """Signal the worker to stop (takes effect between ticks)."""
        self._running = False
        self._stop_event.set()

    async def _sleep_until_stopped(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except TimeoutError:
            pass

    async def run_tick(self) -> TickOutcome:
        """Execute one tick and schedule the next one.

        Never raises for storage or catalog errors; those become outcomes.
        """
        started_at = self._clock()
        self._stats["ticks"] += 1
        set_correlation_id(f"{self.name}-{self._stats['ticks']}")

        outcome = await self._tick(started_at)

        normal_deadline = started_at + self._interval
        if outcome in BACKOFF_OUTCOMES:
            self._next_run_at = normal_deadline + self._backoff
            logger.debug(
                "EntryMetadataSyncWorker[%s] backing off until %s",
                self.media_type.value,
                self._next_run_at.isoformat(),
            )
        else:
            self._next_run_at = normal_deadline

        self._stats["last_outcome"] = outcome.value
        self._stats["last_tick_at"] = started_at.isoformat()
        return outcome

    async def _tick(self, now: datetime) -> TickOutcome:
        media = self.media_type.value

        try:
            entry = await self._find_candidate(now)
        except Exception as e:
            self._record_error("storage_failures", e)
            logger.error(
                "EntryMetadataSyncWorker[%s] stale entry query failed: %s",
                media,
                e,
                exc_info=True,
            )
            return TickOutcome.STORAGE_FAILED

        if entry is None:
            self._stats["no_candidate"] += 1
            logger.info("No outdated %s entries found", media)
            return TickOutcome.NO_CANDIDATE

        if entry.external_id == self._last_attempted_id:
            self._stats["skipped"] += 1
            logger.info(
                "Skipping %s entry %d, it was the last entry attempted",
                media,
                entry.external_id,
            )
            return TickOutcome.SKIPPED

        self._last_attempted_id = entry.external_id

        # TODO: quarantine entries whose lookup keeps failing (count failures per external id).
        # While such an entry stays the stalest one, every later tick of this loop skips it.
        try:
            snapshot = await self._catalog.fetch_by_id(entry.external_id)
        except Exception as e:
            self._record_error("lookup_failures", e)
            logger.warning(
                "Error updating status for %s entry %d: %s",
                media,
                entry.external_id,
                e,
                extra={"media_type": media, "external_id": entry.external_id},
            )
            return TickOutcome.LOOKUP_FAILED

        try:
            updated = await self._persist(entry, snapshot, self._clock())
        except Exception as e:
            self._record_error("storage_failures", e)
            logger.error(
                "EntryMetadataSyncWorker[%s] failed to persist entry %d: %s",
                media,
                entry.external_id,
                e,
                exc_info=True,
            )
            return TickOutcome.STORAGE_FAILED

        self._stats["refreshed"] += 1
        logger.info(
            "Updated status for %s entry %d (%s -> %s)",
            media,
            updated.external_id,
            entry.display_name,
            snapshot.title or updated.display_name,
            extra={
                "media_type": media,
                "external_id": updated.external_id,
                "status": updated.status,
            },
        )
        return TickOutcome.REFRESHED

    async def _find_candidate(self, now: datetime) -> MediaEntry | None:
        async with self._session_factory() as session:
            repository = self._repository_factory(session)
            return await repository.find_one_stale(self._policy, now)

    async def _persist(
        self, entry: MediaEntry, snapshot: MetadataSnapshot, now: datetime
    ) -> MediaEntry:
        async with self._session_factory() as session:
            service = EntryRefreshService(self._repository_factory(session))
            updated = await service.refresh(entry, snapshot, now)
            await session.commit()
            return updated

    def _record_error(self, counter: str, error: Exception) -> None:
        self._stats[counter] += 1
        self._stats["last_error"] = str(error)

    def get_status(self) -> dict[str, Any]:
        """Get worker status for health endpoints."""
        return {
            **self._stats,
            "running": self._running,
            "media_type": self.media_type.value,
            "interval_seconds": int(self._interval.total_seconds()),
            "outdated_after_seconds": int(self._policy.outdated_after.total_seconds()),
            "last_attempted_id": self._last_attempted_id,
            "next_run_at": self._next_run_at.isoformat() if self._next_run_at else None,
        }


def create_entry_metadata_worker(
    media_type: MediaType,
    settings: EntrySyncSettings,
    session_factory: async_sessionmaker[AsyncSession],
    repository_factory: RepositoryFactory,
    catalog: ICatalogLookup,
) -> EntryMetadataSyncWorker | None:
    """Create the sync worker for one media type, or None when it is disabled.

    An interval of 0 (or an unset/unparseable one) is the documented way to
    switch a worker off, so it is logged as a warning and not treated as an error.
    """
    interval = settings.interval_for(media_type.value)
    outdated_after = settings.outdated_after_for(media_type.value)

    if interval <= 0:
        logger.warning(
            "Entry metadata sync for %s disabled (interval=0), skipping setup",
            media_type.value,
        )
        return None

    if media_type == MediaType.MOVIE:
        policy = StalenessPolicy.for_movies(outdated_after)
    else:
        policy = StalenessPolicy.for_shows(outdated_after)

    logger.info(
        "Creating %s entry updater with interval of %ds and outdated delta of %s",
        media_type.value,
        interval,
        outdated_after,
    )
    return EntryMetadataSyncWorker(
        session_factory=session_factory,
        repository_factory=repository_factory,
        catalog=catalog,
        policy=policy,
        interval_seconds=interval,
        backoff_seconds=settings.backoff_seconds,
    )
