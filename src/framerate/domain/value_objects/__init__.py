"""Value objects for the domain layer."""

from framerate.domain.value_objects.staleness import (
    DEFAULT_MOVIE_OUTDATED_AFTER,
    DEFAULT_SHOW_OUTDATED_AFTER,
    IMMINENT_AIR_WINDOW,
    MOVIE_ACTIVE_STATUSES,
    SHOW_ACTIVE_STATUSES,
    StalenessPolicy,
)

__all__ = [
    "DEFAULT_MOVIE_OUTDATED_AFTER",
    "DEFAULT_SHOW_OUTDATED_AFTER",
    "IMMINENT_AIR_WINDOW",
    "MOVIE_ACTIVE_STATUSES",
    "SHOW_ACTIVE_STATUSES",
    "StalenessPolicy",
]
