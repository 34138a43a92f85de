"""Staleness policies for catalog-derived entry metadata."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from framerate.domain.entities import MediaEntry, MediaType, ShowEntry

# Statuses where the catalog item can still change. Anything else ("Released", "Ended",
# "Canceled", ...) is terminal and the entry is never selected again.
MOVIE_ACTIVE_STATUSES: frozenset[str] = frozenset(
    {"Rumored", "Planned", "In Production", "Post Production"}
)
SHOW_ACTIVE_STATUSES: frozenset[str] = frozenset(
    {"Returning Series", "Planned", "In Production", "Pilot"}
)

DEFAULT_MOVIE_OUTDATED_AFTER = timedelta(weeks=8)
DEFAULT_SHOW_OUTDATED_AFTER = timedelta(weeks=6)
IMMINENT_AIR_WINDOW = timedelta(days=1)


@dataclass(frozen=True)
class StalenessPolicy:
    """Which entries need a refresh, and when.

    An entry is stale when its status is unknown or still active AND either
    it was last checked more than ``outdated_after`` ago, or (when
    ``imminent_air_window`` is set) its next air date falls on or before the
    day of ``now + imminent_air_window`` and it was not checked within that
    window.

    The repository query in ``infrastructure.persistence.repositories``
    translates exactly this predicate into SQL; ``is_stale`` is the pure
    version used for in-memory checks and tests.
    """

    media_type: MediaType
    outdated_after: timedelta
    active_statuses: frozenset[str]
    imminent_air_window: timedelta | None = None

    def is_eligible_status(self, status: str | None) -> bool:
        return status is None or status in self.active_statuses

    def outdated_cutoff(self, now: datetime) -> datetime:
        return now - self.outdated_after

    def air_date_cutoff(self, now: datetime) -> date:
        """Latest next-air date that counts as imminent at ``now``.

        Air dates are calendar dates (midnight UTC), so "before now + window"
        includes the calendar day of ``now + window`` itself.
        """
        window = self.imminent_air_window or timedelta(0)
        return (now + window).date()

    def is_stale(self, entry: MediaEntry, now: datetime) -> bool:
        """Check whether an entry should be refreshed at ``now``."""
        if entry.media_type != self.media_type:
            return False
        if not self.is_eligible_status(entry.status):
            return False
        if entry.last_checked_at < self.outdated_cutoff(now):
            return True
        if self.imminent_air_window is None or not isinstance(entry, ShowEntry):
            return False
        if entry.next_air_date is None:
            return False
        return (
            entry.next_air_date <= self.air_date_cutoff(now)
            and entry.last_checked_at < now - self.imminent_air_window
        )

    @classmethod
    def for_movies(
        cls, outdated_after: timedelta = DEFAULT_MOVIE_OUTDATED_AFTER
    ) -> "StalenessPolicy":
        return cls(
            media_type=MediaType.MOVIE,
            outdated_after=outdated_after,
            active_statuses=MOVIE_ACTIVE_STATUSES,
        )

    @classmethod
    def for_shows(
        cls, outdated_after: timedelta = DEFAULT_SHOW_OUTDATED_AFTER
    ) -> "StalenessPolicy":
        return cls(
            media_type=MediaType.SHOW,
            outdated_after=outdated_after,
            active_statuses=SHOW_ACTIVE_STATUSES,
            imminent_air_window=IMMINENT_AIR_WINDOW,
        )
