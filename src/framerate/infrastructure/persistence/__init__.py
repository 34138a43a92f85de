"""Infrastructure persistence layer."""

from .database import Database
from .models import Base, MovieEntryModel, ShowEntryModel
from .repositories import MovieEntryRepository, ShowEntryRepository

__all__ = [
    "Base",
    "Database",
    "MovieEntryModel",
    "MovieEntryRepository",
    "ShowEntryModel",
    "ShowEntryRepository",
]
