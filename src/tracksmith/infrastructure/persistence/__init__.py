"""Persistence layer: database, ORM models, repositories."""

from tracksmith.infrastructure.persistence.database import Database
from tracksmith.infrastructure.persistence.models import (
    AlbumModel,
    ArtistModel,
    Base,
    SongModel,
)
from tracksmith.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    SongRepository,
)
from tracksmith.infrastructure.persistence.retry import (
    DatabaseLockMetrics,
    is_lock_error,
    with_db_retry,
)

__all__ = [
    "Database",
    "Base",
    "ArtistModel",
    "AlbumModel",
    "SongModel",
    "ArtistRepository",
    "AlbumRepository",
    "SongRepository",
    "DatabaseLockMetrics",
    "is_lock_error",
    "with_db_retry",
]
