"""Repository implementations for collection entries."""

from __future__ import annotations

from collections.abc import Collection
from datetime import UTC, datetime
from typing import Any, ClassVar

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from framerate.domain.entities import MediaType, MovieEntry, ShowEntry
from framerate.domain.exceptions import EntityNotFoundException
from framerate.domain.ports import IMediaEntryRepository
from framerate.domain.value_objects import StalenessPolicy

from .models import MovieEntryModel, ShowEntryModel, ensure_utc_aware


class _EntryRepository(IMediaEntryRepository):
    """Shared query logic for movie and show entries.

    Subclasses set the ORM model, the external-id column name and the
    entity mapping. Like every repository here, this one never commits:
    the caller owns the session and the transaction.
    """

    model: ClassVar[Any]
    id_column: ClassVar[str]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    def _to_entity(self, model: Any) -> Any:
        raise NotImplementedError

    def _to_model(self, entry: Any) -> Any:
        raise NotImplementedError

    def _staleness_clause(self, policy: StalenessPolicy, now: datetime) -> Any:
        return self.model.last_checked_at < policy.outdated_cutoff(now)

    async def add(self, entry: Any) -> None:
        """Stage a new entry for insert."""
        self.session.add(self._to_model(entry))

    async def list_by_external_id(self, external_id: int) -> list[Any]:
        """Get every collection row pointing at one catalog item."""
        stmt = (
            select(self.model)
            .where(getattr(self.model, self.id_column) == external_id)
            .order_by(self.model.collection_id)
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    # Hey future me - this is THE selection query of the sync workers. It must stay in lockstep
    # with StalenessPolicy.is_stale(). Ordering: oldest last_checked_at first, external id as the
    # tie-breaker, so the pick is deterministic and the longest-neglected entry wins.
    async def find_one_stale(
        self, policy: StalenessPolicy, now: datetime
    ) -> Any | None:
        """Return the single stalest entry matching the policy, or None."""
        now = now.astimezone(UTC)
        id_col = getattr(self.model, self.id_column)
        stmt = (
            select(self.model)
            .where(
                or_(
                    self.model.status.in_(sorted(policy.active_statuses)),
                    self.model.status.is_(None),
                )
            )
            .where(self._staleness_clause(policy, now))
            .order_by(self.model.last_checked_at.asc(), id_col.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        model = result.scalars().first()
        return self._to_entity(model) if model else None

    async def update(self, entry: Any, fields: Collection[str] | None = None) -> Any:
        """Write catalog-derived fields to every row with the entry's external id.

        Single unconditional UPDATE, no optimistic concurrency check. Title and
        user-owned fields are never written.

        Args:
            entry: Refreshed entry supplying the values
            fields: Catalog fields to write besides ``last_checked_at``. Other
                collections holding the same title keep their own value for
                anything not listed. Defaults to all of ``entry.MERGED_FIELDS``.

        Raises:
            EntityNotFoundException: If no row has this external id anymore
        """
        names = entry.MERGED_FIELDS if fields is None else fields
        values = {name: getattr(entry, name) for name in names if name in entry.MERGED_FIELDS}
        values["last_checked_at"] = entry.last_checked_at

        stmt = (
            update(self.model)
            .where(getattr(self.model, self.id_column) == entry.external_id)
            .values(**values)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise EntityNotFoundException(type(entry).__name__, entry.external_id)
        return entry


class MovieEntryRepository(_EntryRepository):
    """SQLAlchemy implementation of the movie entry repository."""

    media_type = MediaType.MOVIE
    model = MovieEntryModel
    id_column = "movie_id"

    def _to_entity(self, model: MovieEntryModel) -> MovieEntry:
        return MovieEntry(
            collection_id=model.collection_id,
            user_id=model.user_id,
            movie_id=model.movie_id,
            title=model.title,
            imdb_id=model.imdb_id,
            poster_path=model.poster_path,
            release_date=model.release_date,
            status=model.status,
            last_checked_at=ensure_utc_aware(model.last_checked_at),
        )

    def _to_model(self, entry: MovieEntry) -> MovieEntryModel:
        return MovieEntryModel(
            collection_id=entry.collection_id,
            user_id=entry.user_id,
            movie_id=entry.movie_id,
            title=entry.title,
            imdb_id=entry.imdb_id,
            poster_path=entry.poster_path,
            release_date=entry.release_date,
            status=entry.status,
            last_checked_at=entry.last_checked_at,
        )


class ShowEntryRepository(_EntryRepository):
    """SQLAlchemy implementation of the show entry repository."""

    media_type = MediaType.SHOW
    model = ShowEntryModel
    id_column = "show_id"

    # Shows get a second way to become stale: an episode airs within the window and we
    # haven't looked since before the window started.
    def _staleness_clause(self, policy: StalenessPolicy, now: datetime) -> Any:
        outdated = ShowEntryModel.last_checked_at < policy.outdated_cutoff(now)
        if policy.imminent_air_window is None:
            return outdated
        imminent = and_(
            ShowEntryModel.next_air_date <= policy.air_date_cutoff(now),
            ShowEntryModel.last_checked_at < now - policy.imminent_air_window,
        )
        return or_(outdated, imminent)

    def _to_entity(self, model: ShowEntryModel) -> ShowEntry:
        return ShowEntry(
            collection_id=model.collection_id,
            user_id=model.user_id,
            show_id=model.show_id,
            name=model.name,
            imdb_id=model.imdb_id,
            status=model.status,
            poster_path=model.poster_path,
            first_air_date=model.first_air_date,
            last_air_date=model.last_air_date,
            next_air_date=model.next_air_date,
            last_checked_at=ensure_utc_aware(model.last_checked_at),
        )

    def _to_model(self, entry: ShowEntry) -> ShowEntryModel:
        return ShowEntryModel(
            collection_id=entry.collection_id,
            user_id=entry.user_id,
            show_id=entry.show_id,
            name=entry.name,
            imdb_id=entry.imdb_id,
            status=entry.status,
            poster_path=entry.poster_path,
            first_air_date=entry.first_air_date,
            last_air_date=entry.last_air_date,
            next_air_date=entry.next_air_date,
            last_checked_at=entry.last_checked_at,
        )
