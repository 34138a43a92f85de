"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from collections.abc import Collection
from datetime import datetime

from framerate.domain.entities import MediaEntry, MediaType, MetadataSnapshot
from framerate.domain.value_objects import StalenessPolicy


class IMediaEntryRepository(ABC):
    """Storage operations the entry sync workers need.

    Hey future me - this is intentionally narrow. The rest of the app has its own CRUD for
    entries; the sync workers only ever find one stale entry and write it back.
    """

    media_type: MediaType

    @abstractmethod
    async def find_one_stale(
        self, policy: StalenessPolicy, now: datetime
    ) -> MediaEntry | None:
        """Return one entry matching the policy, or None when nothing is stale."""
        pass

    @abstractmethod
    async def update(
        self, entry: MediaEntry, fields: Collection[str] | None = None
    ) -> MediaEntry:
        """Write catalog-derived fields back for every row of the entry's external id.

        Only ``fields`` (all merged fields when None) and ``last_checked_at`` are written.
        """
        pass


class ICatalogLookup(ABC):
    """Fetches current metadata for one catalog item."""

    media_type: MediaType

    @abstractmethod
    async def fetch_by_id(self, external_id: int) -> MetadataSnapshot:
        """Fetch metadata for an item.

        Raises:
            CatalogLookupError: For any failure (network, HTTP status, payload)
        """
        pass


__all__ = ["ICatalogLookup", "IMediaEntryRepository"]
