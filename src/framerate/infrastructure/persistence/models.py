"""SQLAlchemy ORM models for Framerate entries."""

from datetime import UTC, date, datetime

import sqlalchemy as sa
from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! When we store UTC datetimes, they come
# back as "naive" (no tzinfo). ALWAYS run values read from the DB through this before comparing
# with datetime.now(UTC), or you get "can't compare offset-naive and offset-aware" TypeError.
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Composite primary key (collection_id, movie_id): the same movie can sit in several collections,
# and each row is a separate denormalized copy. The sync workers update ALL rows of a movie_id
# at once. The index on (status, last_checked_at) backs the stale-entry query.
class MovieEntryModel(Base):
    """A movie inside a user's collection."""

    __tablename__ = "movie_entries"

    collection_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    movie_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    imdb_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    poster_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    release_date: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_checked_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("ix_movie_entries_status_checked", "status", "last_checked_at"),
    )


class ShowEntryModel(Base):
    """A show inside a user's collection."""

    __tablename__ = "show_entries"

    collection_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    show_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    imdb_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    poster_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    first_air_date: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    last_air_date: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    next_air_date: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    last_checked_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("ix_show_entries_status_checked", "status", "last_checked_at"),
        Index("ix_show_entries_next_air_date", "next_air_date"),
    )
