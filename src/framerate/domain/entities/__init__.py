"""Domain entities."""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import ClassVar, TypeVar


class MediaType(str, Enum):
    """Kind of catalog item an entry points at."""

    MOVIE = "movie"
    SHOW = "show"


@dataclass(frozen=True)
class MetadataSnapshot:
    """Current catalog metadata for one item.

    Every field is optional. None means "the catalog told us nothing about
    it", not "the value is now empty". A field the catalog explicitly
    reported as empty (a show with no next episode scheduled) is listed in
    ``cleared`` instead, and clears the stored value on merge.
    """

    title: str | None = None
    poster_path: str | None = None
    status: str | None = None
    release_date: date | None = None
    first_air_date: date | None = None
    last_air_date: date | None = None
    next_air_date: date | None = None
    cleared: frozenset[str] = field(default_factory=frozenset)

    def provided(self, field_names: Iterable[str]) -> dict[str, object]:
        """Values the catalog actually reported among ``field_names``.

        Cleared fields map to None; fields the catalog said nothing about are left out.
        """
        values: dict[str, object] = {}
        for name in field_names:
            value = getattr(self, name)
            if value is not None or name in self.cleared:
                values[name] = value
        return values


# Hey future me - entries are the user's copy of catalog data. The sync workers only ever touch
# the catalog-derived fields listed in MERGED_FIELDS. Title/name is NOT refreshed (the title
# the user saved stays), and collection_id/user_id/imdb_id are never touched either.
@dataclass
class MovieEntry:
    """A movie stored in a user's collection."""

    MEDIA_TYPE: ClassVar[MediaType] = MediaType.MOVIE
    MERGED_FIELDS: ClassVar[tuple[str, ...]] = ("poster_path", "status", "release_date")

    collection_id: str
    user_id: str
    movie_id: int
    title: str
    last_checked_at: datetime
    imdb_id: str | None = None
    poster_path: str | None = None
    release_date: date | None = None
    status: str | None = None

    @property
    def external_id(self) -> int:
        return self.movie_id

    @property
    def display_name(self) -> str:
        return self.title

    @property
    def media_type(self) -> MediaType:
        return self.MEDIA_TYPE

    def with_snapshot(self, snapshot: MetadataSnapshot, checked_at: datetime) -> "MovieEntry":
        return _merge(self, snapshot, checked_at)


@dataclass
class ShowEntry:
    """A show stored in a user's collection."""

    MEDIA_TYPE: ClassVar[MediaType] = MediaType.SHOW
    MERGED_FIELDS: ClassVar[tuple[str, ...]] = (
        "poster_path",
        "status",
        "first_air_date",
        "last_air_date",
        "next_air_date",
    )

    collection_id: str
    user_id: str
    show_id: int
    name: str
    last_checked_at: datetime
    imdb_id: str | None = None
    status: str | None = None
    poster_path: str | None = None
    first_air_date: date | None = None
    last_air_date: date | None = None
    next_air_date: date | None = None

    @property
    def external_id(self) -> int:
        return self.show_id

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def media_type(self) -> MediaType:
        return self.MEDIA_TYPE

    def with_snapshot(self, snapshot: MetadataSnapshot, checked_at: datetime) -> "ShowEntry":
        return _merge(self, snapshot, checked_at)


MediaEntry = MovieEntry | ShowEntry


EntryT = TypeVar("EntryT", bound=MediaEntry)


def _merge(entry: EntryT, snapshot: MetadataSnapshot, checked_at: datetime) -> EntryT:
    changes = snapshot.provided(entry.MERGED_FIELDS)

    # last_checked_at never moves backwards, even if the wall clock does
    changes["last_checked_at"] = max(checked_at, entry.last_checked_at)
    return replace(entry, **changes)


__all__ = [
    "MediaEntry",
    "MediaType",
    "MetadataSnapshot",
    "MovieEntry",
    "ShowEntry",
]
