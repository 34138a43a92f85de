"""TMDb HTTP client and catalog lookups for movie and show entries."""

import logging
from datetime import date
from typing import Any

import httpx

from framerate.config import TMDbSettings
from framerate.domain.entities import MediaType, MetadataSnapshot
from framerate.domain.exceptions import CatalogLookupError
from framerate.domain.ports import ICatalogLookup

logger = logging.getLogger(__name__)


class TMDbClient:
    """HTTP client for the TMDb v3 API."""

    # Hey future me - TMDb accepts either a v4 "API Read Access Token" as a bearer header or
    # the classic v3 api_key as a query param. We prefer the bearer token when both are set.
    # The timeout is NOT optional: the sync workers block on this call, and a hung request
    # would stall a worker loop until the socket dies.
    def __init__(
        self, settings: TMDbSettings, client: httpx.AsyncClient | None = None
    ) -> None:
        """
        Initialize TMDb client.

        Args:
            settings: TMDb configuration settings
            client: Optional pre-built httpx client (tests, shared pools)
        """
        self.settings = settings
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.settings.access_token:
                headers["Authorization"] = f"Bearer {self.settings.access_token}"

            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers=headers,
                timeout=self.settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def _params(self) -> dict[str, str]:
        params = {"language": self.settings.language}
        if self.settings.api_key and not self.settings.access_token:
            params["api_key"] = self.settings.api_key
        return params

    async def _get_json(self, path: str, external_id: int) -> dict[str, Any]:
        """GET a TMDb resource and return the decoded JSON object.

        Raises:
            CatalogLookupError: On timeout, transport error, non-2xx status or
                a body that is not a JSON object
        """
        client = await self._get_client()
        logger.debug("TMDb GET %s", path)
        try:
            response = await client.get(path, params=self._params())
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise CatalogLookupError(
                f"TMDb request {path} timed out", external_id=external_id
            ) from e
        except httpx.HTTPStatusError as e:
            raise CatalogLookupError(
                f"TMDb request {path} failed with status {e.response.status_code}",
                external_id=external_id,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise CatalogLookupError(
                f"TMDb request {path} failed: {e}", external_id=external_id
            ) from e
        except ValueError as e:
            raise CatalogLookupError(
                f"TMDb returned invalid JSON for {path}", external_id=external_id
            ) from e

        if not isinstance(data, dict):
            raise CatalogLookupError(
                f"TMDb returned unexpected payload for {path}", external_id=external_id
            )
        return data

    async def get_movie(self, movie_id: int) -> dict[str, Any]:
        """Fetch movie details (GET /movie/{id})."""
        return await self._get_json(f"/movie/{movie_id}", movie_id)

    async def get_show(self, show_id: int) -> dict[str, Any]:
        """Fetch TV show details (GET /tv/{id})."""
        return await self._get_json(f"/tv/{show_id}", show_id)


# TMDb sends "" for unknown dates, never null, so both map to None here.
def _parse_date(value: Any, field: str, external_id: int) -> date | None:
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise CatalogLookupError(
            f"TMDb returned malformed {field} {value!r}", external_id=external_id
        ) from e


def _optional_str(value: Any) -> str | None:
    if value in (None, ""):
        return None
    return str(value)


def parse_movie_payload(payload: dict[str, Any], movie_id: int) -> MetadataSnapshot:
    """Map a TMDb movie payload to a metadata snapshot."""
    return MetadataSnapshot(
        title=_optional_str(payload.get("title")),
        poster_path=_optional_str(payload.get("poster_path")),
        status=_optional_str(payload.get("status")),
        release_date=_parse_date(payload.get("release_date"), "release_date", movie_id),
    )


def parse_show_payload(payload: dict[str, Any], show_id: int) -> MetadataSnapshot:
    """Map a TMDb TV payload to a metadata snapshot.

    ``next_episode_to_air: null`` means nothing is scheduled, so the stored
    next air date is cleared rather than kept.
    """
    next_episode = payload.get("next_episode_to_air") or {}
    if not isinstance(next_episode, dict):
        raise CatalogLookupError(
            "TMDb returned malformed next_episode_to_air", external_id=show_id
        )
    next_air_date = _parse_date(next_episode.get("air_date"), "air_date", show_id)

    cleared: frozenset[str] = frozenset()
    if "next_episode_to_air" in payload and next_air_date is None:
        cleared = frozenset({"next_air_date"})

    return MetadataSnapshot(
        title=_optional_str(payload.get("name")),
        poster_path=_optional_str(payload.get("poster_path")),
        status=_optional_str(payload.get("status")),
        first_air_date=_parse_date(
            payload.get("first_air_date"), "first_air_date", show_id
        ),
        last_air_date=_parse_date(payload.get("last_air_date"), "last_air_date", show_id),
        next_air_date=next_air_date,
        cleared=cleared,
    )


class TMDbMovieLookup(ICatalogLookup):
    """Catalog lookup for movie entries backed by TMDb."""

    media_type = MediaType.MOVIE

    def __init__(self, client: TMDbClient) -> None:
        self._client = client

    async def fetch_by_id(self, external_id: int) -> MetadataSnapshot:
        payload = await self._client.get_movie(external_id)
        return parse_movie_payload(payload, external_id)


class TMDbShowLookup(ICatalogLookup):
    """Catalog lookup for show entries backed by TMDb."""

    media_type = MediaType.SHOW

    def __init__(self, client: TMDbClient) -> None:
        self._client = client

    async def fetch_by_id(self, external_id: int) -> MetadataSnapshot:
        payload = await self._client.get_show(external_id)
        return parse_show_payload(payload, external_id)
