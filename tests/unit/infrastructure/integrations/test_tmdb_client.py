"""Tests for the TMDb client and catalog lookups."""

from datetime import date

import httpx
import pytest
from pytest_httpx import HTTPXMock

from framerate.config import TMDbSettings
from framerate.domain.entities import MediaType
from framerate.domain.exceptions import CatalogLookupError
from framerate.infrastructure.integrations import (
    TMDbClient,
    TMDbMovieLookup,
    TMDbShowLookup,
)
from framerate.infrastructure.integrations.tmdb_client import (
    parse_movie_payload,
    parse_show_payload,
)

MOVIE_URL = "https://api.themoviedb.org/3/movie/603?language=en-US"
SHOW_URL = "https://api.themoviedb.org/3/tv/1399?language=en-US"


@pytest.fixture
def tmdb_settings() -> TMDbSettings:
    """TMDb settings with a bearer token."""
    return TMDbSettings(
        base_url="https://api.themoviedb.org/3",
        access_token="test-token",
        api_key="",
        timeout=5.0,
        language="en-US",
    )


@pytest.fixture
async def tmdb_client(tmdb_settings: TMDbSettings):
    client = TMDbClient(tmdb_settings)
    yield client
    await client.close()


class TestTMDbClientRequests:
    """HTTP-level behavior."""

    async def test_movie_lookup_success(
        self, tmdb_client: TMDbClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=MOVIE_URL,
            json={
                "id": 603,
                "title": "The Matrix",
                "status": "Released",
                "poster_path": "/matrix.jpg",
                "release_date": "1999-03-30",
            },
        )

        snapshot = await TMDbMovieLookup(tmdb_client).fetch_by_id(603)

        assert snapshot.title == "The Matrix"
        assert snapshot.status == "Released"
        assert snapshot.poster_path == "/matrix.jpg"
        assert snapshot.release_date == date(1999, 3, 30)

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"] == "Bearer test-token"
        assert "api_key" not in request.url.params

    async def test_show_lookup_success(
        self, tmdb_client: TMDbClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=SHOW_URL,
            json={
                "id": 1399,
                "name": "Game of Thrones",
                "status": "Returning Series",
                "poster_path": "/got.jpg",
                "first_air_date": "2011-04-17",
                "last_air_date": "2019-05-12",
                "next_episode_to_air": {"air_date": "2019-05-19", "episode_number": 6},
            },
        )

        snapshot = await TMDbShowLookup(tmdb_client).fetch_by_id(1399)

        assert snapshot.title == "Game of Thrones"
        assert snapshot.status == "Returning Series"
        assert snapshot.first_air_date == date(2011, 4, 17)
        assert snapshot.last_air_date == date(2019, 5, 12)
        assert snapshot.next_air_date == date(2019, 5, 19)

    async def test_api_key_used_without_token(self, httpx_mock: HTTPXMock) -> None:
        settings = TMDbSettings(
            base_url="https://api.themoviedb.org/3", access_token="", api_key="abc"
        )
        client = TMDbClient(settings)
        httpx_mock.add_response(
            url="https://api.themoviedb.org/3/movie/603?language=en-US&api_key=abc",
            json={"id": 603},
        )

        try:
            await client.get_movie(603)
        finally:
            await client.close()

        request = httpx_mock.get_request()
        assert request is not None
        assert "Authorization" not in request.headers

    async def test_not_found_raises_lookup_error(
        self, tmdb_client: TMDbClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=MOVIE_URL,
            status_code=404,
            json={"status_code": 34, "status_message": "The resource could not be found."},
        )

        with pytest.raises(CatalogLookupError) as exc_info:
            await TMDbMovieLookup(tmdb_client).fetch_by_id(603)

        assert exc_info.value.status_code == 404
        assert exc_info.value.external_id == 603

    async def test_server_error_raises_lookup_error(
        self, tmdb_client: TMDbClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=SHOW_URL, status_code=503)

        with pytest.raises(CatalogLookupError) as exc_info:
            await TMDbShowLookup(tmdb_client).fetch_by_id(1399)

        assert exc_info.value.status_code == 503

    async def test_timeout_raises_lookup_error(
        self, tmdb_client: TMDbClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=MOVIE_URL)

        with pytest.raises(CatalogLookupError, match="timed out"):
            await tmdb_client.get_movie(603)

    async def test_connection_error_raises_lookup_error(
        self, tmdb_client: TMDbClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=MOVIE_URL)

        with pytest.raises(CatalogLookupError):
            await tmdb_client.get_movie(603)

    async def test_invalid_json_raises_lookup_error(
        self, tmdb_client: TMDbClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=MOVIE_URL, content=b"<html>oops</html>")

        with pytest.raises(CatalogLookupError, match="invalid JSON"):
            await tmdb_client.get_movie(603)

    async def test_non_object_payload_raises_lookup_error(
        self, tmdb_client: TMDbClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=MOVIE_URL, json=[1, 2, 3])

        with pytest.raises(CatalogLookupError, match="unexpected payload"):
            await tmdb_client.get_movie(603)

    async def test_close_keeps_injected_client_open(self, tmdb_settings: TMDbSettings) -> None:
        async with httpx.AsyncClient() as http:
            client = TMDbClient(tmdb_settings, client=http)
            await client.close()
            assert not http.is_closed


class TestPayloadParsing:
    """Mapping TMDb JSON to snapshots."""

    def test_empty_strings_become_none(self) -> None:
        snapshot = parse_movie_payload(
            {"title": "Untitled", "release_date": "", "poster_path": None, "status": ""},
            1,
        )

        assert snapshot.release_date is None
        assert snapshot.poster_path is None
        assert snapshot.status is None

    def test_malformed_date_raises(self) -> None:
        with pytest.raises(CatalogLookupError, match="release_date"):
            parse_movie_payload({"release_date": "30/03/1999"}, 603)

    def test_show_without_next_episode(self) -> None:
        snapshot = parse_show_payload(
            {"name": "Chernobyl", "status": "Ended", "next_episode_to_air": None}, 87108
        )

        assert snapshot.next_air_date is None
        assert snapshot.status == "Ended"
        assert snapshot.cleared == frozenset({"next_air_date"})

    def test_show_payload_missing_next_episode_key_clears_nothing(self) -> None:
        snapshot = parse_show_payload({"name": "Severance", "status": "Returning Series"}, 95396)

        assert snapshot.next_air_date is None
        assert snapshot.cleared == frozenset()

    def test_show_with_scheduled_episode_clears_nothing(self) -> None:
        snapshot = parse_show_payload(
            {"next_episode_to_air": {"air_date": "2025-01-17"}}, 95396
        )

        assert snapshot.next_air_date == date(2025, 1, 17)
        assert snapshot.cleared == frozenset()

    def test_show_with_malformed_next_episode(self) -> None:
        with pytest.raises(CatalogLookupError):
            parse_show_payload({"next_episode_to_air": "soon"}, 1)


class TestLookupMediaTypes:
    def test_lookups_declare_media_type(self, tmdb_settings: TMDbSettings) -> None:
        client = TMDbClient(tmdb_settings)

        assert TMDbMovieLookup(client).media_type == MediaType.MOVIE
        assert TMDbShowLookup(client).media_type == MediaType.SHOW
