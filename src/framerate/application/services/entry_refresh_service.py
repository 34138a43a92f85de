"""Merge fresh catalog metadata into a stored entry and persist it."""

import logging
from datetime import UTC, datetime

from framerate.domain.entities import MediaEntry, MetadataSnapshot
from framerate.domain.ports import IMediaEntryRepository

logger = logging.getLogger(__name__)


class EntryRefreshService:
    """Applies a metadata snapshot to an entry and writes it back.

    Only catalog-derived fields are merged, and only those the snapshot
    actually reports (a value, or an explicit clear). The same field list
    goes to the repository, so other collections holding the title keep
    their own value for everything else. ``last_checked_at`` is stamped on
    every refresh, even when nothing else changed, so the entry drops out
    of the stale set. The write is a single unconditional update keyed by
    the external id.
    """

    def __init__(self, repository: IMediaEntryRepository) -> None:
        self._repository = repository

    async def refresh(
        self,
        entry: MediaEntry,
        snapshot: MetadataSnapshot,
        now: datetime | None = None,
    ) -> MediaEntry:
        """Merge ``snapshot`` into ``entry`` and persist the result.

        Args:
            entry: Entry as currently stored
            snapshot: Metadata just fetched from the catalog
            now: Check timestamp (defaults to current UTC time)

        Returns:
            The entry as written

        Raises:
            EntityNotFoundException: If the entry vanished in the meantime
            SQLAlchemyError: On database errors
        """
        checked_at = now or datetime.now(UTC)
        updated = entry.with_snapshot(snapshot, checked_at)
        fields = tuple(snapshot.provided(entry.MERGED_FIELDS))
        logger.debug(
            "Persisting %s entry %d (status %r -> %r)",
            entry.media_type.value,
            entry.external_id,
            entry.status,
            updated.status,
        )
        return await self._repository.update(updated, fields=fields)
