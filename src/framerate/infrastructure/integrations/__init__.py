"""External service integrations."""

from framerate.infrastructure.integrations.tmdb_client import (
    TMDbClient,
    TMDbMovieLookup,
    TMDbShowLookup,
)

__all__ = ["TMDbClient", "TMDbMovieLookup", "TMDbShowLookup"]
