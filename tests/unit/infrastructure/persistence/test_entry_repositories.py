"""Tests for the movie and show entry repositories against SQLite.

Hey future me - these run the real SQL. Every selection case mirrors a case in
test_staleness_policy.py, and where it matters we assert the query result agrees with
StalenessPolicy.is_stale() on the same rows.
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta

import pytest

from framerate.domain.entities import MovieEntry, ShowEntry
from framerate.domain.exceptions import EntityNotFoundException
from framerate.domain.value_objects import StalenessPolicy
from framerate.infrastructure.persistence import (
    Database,
    MovieEntryRepository,
    ShowEntryRepository,
)


async def _seed(db: Database, repo_cls: type, *entries: MovieEntry | ShowEntry) -> None:
    async with db.session_scope() as session:
        repo = repo_cls(session)
        for entry in entries:
            await repo.add(entry)


class TestMovieEntryRepository:
    """Stale selection and update for movies."""

    async def test_no_rows_returns_none(self, database: Database, now: datetime) -> None:
        async with database.session_scope() as session:
            repo = MovieEntryRepository(session)
            assert await repo.find_one_stale(StalenessPolicy.for_movies(), now) is None

    async def test_selects_outdated_unknown_status(
        self,
        database: Database,
        make_movie: Callable[..., MovieEntry],
        now: datetime,
    ) -> None:
        stale = make_movie(movie_id=1, status=None, last_checked_at=now - timedelta(weeks=9))
        await _seed(database, MovieEntryRepository, stale)

        async with database.session_scope() as session:
            found = await MovieEntryRepository(session).find_one_stale(
                StalenessPolicy.for_movies(), now
            )

        assert found is not None
        assert found.movie_id == 1
        assert found.status is None
        assert found.last_checked_at == now - timedelta(weeks=9)

    async def test_terminal_and_fresh_entries_not_selected(
        self,
        database: Database,
        make_movie: Callable[..., MovieEntry],
        now: datetime,
    ) -> None:
        await _seed(
            database,
            MovieEntryRepository,
            make_movie(movie_id=1, status="Released", last_checked_at=now - timedelta(weeks=50)),
            make_movie(movie_id=2, status="Planned", last_checked_at=now - timedelta(weeks=2)),
            make_movie(movie_id=3, status="Canceled", last_checked_at=now - timedelta(weeks=20)),
        )

        async with database.session_scope() as session:
            found = await MovieEntryRepository(session).find_one_stale(
                StalenessPolicy.for_movies(), now
            )

        assert found is None

    async def test_oldest_checked_wins_then_lowest_id(
        self,
        database: Database,
        make_movie: Callable[..., MovieEntry],
        now: datetime,
    ) -> None:
        older = now - timedelta(weeks=12)
        await _seed(
            database,
            MovieEntryRepository,
            make_movie(movie_id=30, last_checked_at=now - timedelta(weeks=9)),
            make_movie(movie_id=20, last_checked_at=older),
            make_movie(movie_id=10, collection_id="col-2", last_checked_at=older),
        )

        async with database.session_scope() as session:
            found = await MovieEntryRepository(session).find_one_stale(
                StalenessPolicy.for_movies(), now
            )

        assert found is not None
        assert found.movie_id == 10

    async def test_query_agrees_with_policy(
        self,
        database: Database,
        make_movie: Callable[..., MovieEntry],
        now: datetime,
    ) -> None:
        policy = StalenessPolicy.for_movies()
        candidates = [
            make_movie(movie_id=1, status="Rumored", last_checked_at=now - timedelta(weeks=9)),
            make_movie(movie_id=2, status="Released", last_checked_at=now - timedelta(weeks=9)),
            make_movie(movie_id=3, status=None, last_checked_at=now - timedelta(days=1)),
            make_movie(movie_id=4, status="Post Production", last_checked_at=now - timedelta(weeks=8, seconds=1)),
        ]
        await _seed(database, MovieEntryRepository, *candidates)

        expected = {c.movie_id for c in candidates if policy.is_stale(c, now)}
        selected: set[int] = set()
        # Pull entries one at a time, marking each as checked, until nothing is stale
        for _ in range(len(candidates)):
            async with database.session_scope() as session:
                repo = MovieEntryRepository(session)
                found = await repo.find_one_stale(policy, now)
                if found is None:
                    break
                selected.add(found.movie_id)
                found.last_checked_at = now
                await repo.update(found)

        assert selected == expected == {1, 4}

    async def test_update_writes_all_collections(
        self,
        database: Database,
        make_movie: Callable[..., MovieEntry],
        now: datetime,
    ) -> None:
        old = now - timedelta(weeks=9)
        await _seed(
            database,
            MovieEntryRepository,
            make_movie(collection_id="col-1", movie_id=42, last_checked_at=old),
            make_movie(collection_id="col-2", user_id="user-2", movie_id=42, last_checked_at=old),
            make_movie(collection_id="col-1", movie_id=7, last_checked_at=old),
        )

        refreshed = make_movie(
            movie_id=42,
            title="Renamed Upstream",
            status="Released",
            poster_path="/p.jpg",
            release_date=date(2024, 5, 1),
            last_checked_at=now,
        )
        async with database.session_scope() as session:
            await MovieEntryRepository(session).update(refreshed)

        async with database.session_scope() as session:
            repo = MovieEntryRepository(session)
            rows = await repo.list_by_external_id(42)
            untouched = await repo.list_by_external_id(7)

        assert [r.collection_id for r in rows] == ["col-1", "col-2"]
        for row in rows:
            assert row.status == "Released"
            assert row.poster_path == "/p.jpg"
            assert row.release_date == date(2024, 5, 1)
            assert row.last_checked_at == now
            # Title is not a catalog-refreshed field
            assert row.title == "Dune: Part Three"
        assert rows[1].user_id == "user-2"
        assert untouched[0].last_checked_at == old

    async def test_update_missing_raises(
        self, database: Database, make_movie: Callable[..., MovieEntry]
    ) -> None:
        async with database.session_scope() as session:
            with pytest.raises(EntityNotFoundException):
                await MovieEntryRepository(session).update(make_movie(movie_id=999))

    async def test_update_limited_fields_keeps_sibling_values(
        self,
        database: Database,
        make_movie: Callable[..., MovieEntry],
        now: datetime,
    ) -> None:
        """Only the listed fields are copied to the other collection's row."""
        old = now - timedelta(weeks=9)
        await _seed(
            database,
            MovieEntryRepository,
            make_movie(collection_id="A", movie_id=7, poster_path="/a.jpg", last_checked_at=old),
            make_movie(collection_id="B", movie_id=7, poster_path="/b.jpg", last_checked_at=old),
        )

        refreshed = make_movie(
            collection_id="A",
            movie_id=7,
            poster_path="/a.jpg",
            status="Released",
            last_checked_at=now,
        )
        async with database.session_scope() as session:
            await MovieEntryRepository(session).update(refreshed, fields=("status",))

        async with database.session_scope() as session:
            rows = await MovieEntryRepository(session).list_by_external_id(7)

        assert [(r.collection_id, r.poster_path) for r in rows] == [
            ("A", "/a.jpg"),
            ("B", "/b.jpg"),
        ]
        assert {r.status for r in rows} == {"Released"}
        assert {r.last_checked_at for r in rows} == {now}


class TestShowEntryRepository:
    """Stale selection for shows, including the imminent air date rule."""

    async def test_ended_show_not_selected(
        self,
        database: Database,
        make_show: Callable[..., ShowEntry],
        now: datetime,
    ) -> None:
        await _seed(
            database,
            ShowEntryRepository,
            make_show(status="Ended", last_checked_at=now - timedelta(weeks=10)),
        )

        async with database.session_scope() as session:
            found = await ShowEntryRepository(session).find_one_stale(
                StalenessPolicy.for_shows(timedelta(weeks=6)), now
            )

        assert found is None

    async def test_imminent_air_date_selected(
        self,
        database: Database,
        make_show: Callable[..., ShowEntry],
        now: datetime,
    ) -> None:
        await _seed(
            database,
            ShowEntryRepository,
            make_show(
                show_id=5,
                next_air_date=(now + timedelta(days=1)).date(),
                last_checked_at=now - timedelta(days=2),
            ),
            make_show(
                show_id=6,
                next_air_date=(now + timedelta(days=1)).date(),
                last_checked_at=now - timedelta(hours=3),
            ),
            make_show(
                show_id=7,
                next_air_date=(now + timedelta(days=9)).date(),
                last_checked_at=now - timedelta(days=2),
            ),
        )

        async with database.session_scope() as session:
            found = await ShowEntryRepository(session).find_one_stale(
                StalenessPolicy.for_shows(), now
            )

        assert found is not None
        assert found.show_id == 5
        assert found.next_air_date == (now + timedelta(days=1)).date()

    async def test_outdated_show_preferred_by_age(
        self,
        database: Database,
        make_show: Callable[..., ShowEntry],
        now: datetime,
    ) -> None:
        await _seed(
            database,
            ShowEntryRepository,
            make_show(
                show_id=5,
                next_air_date=(now + timedelta(days=1)).date(),
                last_checked_at=now - timedelta(days=2),
            ),
            make_show(show_id=8, status="Pilot", last_checked_at=now - timedelta(weeks=7)),
        )

        async with database.session_scope() as session:
            found = await ShowEntryRepository(session).find_one_stale(
                StalenessPolicy.for_shows(), now
            )

        assert found is not None
        assert found.show_id == 8

    async def test_update_show_fields(
        self,
        database: Database,
        make_show: Callable[..., ShowEntry],
        now: datetime,
    ) -> None:
        await _seed(
            database,
            ShowEntryRepository,
            make_show(show_id=1399, last_checked_at=now - timedelta(weeks=7)),
        )

        refreshed = make_show(
            show_id=1399,
            status="Ended",
            first_air_date=date(2011, 4, 17),
            last_air_date=date(2019, 5, 19),
            next_air_date=None,
            last_checked_at=now,
        )
        async with database.session_scope() as session:
            await ShowEntryRepository(session).update(refreshed)

        async with database.session_scope() as session:
            (row,) = await ShowEntryRepository(session).list_by_external_id(1399)

        assert row.status == "Ended"
        assert row.first_air_date == date(2011, 4, 17)
        assert row.last_air_date == date(2019, 5, 19)
        assert row.last_checked_at == now
