"""Storage backend types a Song can live on."""

from enum import Enum


class SongStorageType(str, Enum):
    """Backend holding a song's audio bytes."""

    LOCAL = "local"
    S3 = "s3"
    S3_LEGACY = "s3-legacy"
    DROPBOX = "dropbox"

    # Hey future me - rows written before the storage column existed carry "" (or NULL).
    # Both mean local disk. Anything else unknown is a real error -> ValueError.
    @classmethod
    def from_value(cls, value: str | None) -> "SongStorageType":
        """Parse a storage column value."""
        if not value:
            return cls.LOCAL
        return cls(value)
