"""Domain entities."""

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any

from tracksmith.domain.value_objects import (
    UNKNOWN_ALBUM_NAME,
    UNKNOWN_ARTIST_NAME,
    VARIOUS_ARTISTS_NAME,
    SongStorageType,
    StorageMetadata,
    parse_s3_params,
    resolve_storage_metadata,
)


# Hey future me - the integer values are part of the contract with batch drivers that print
# or aggregate them. Don't renumber!
class SyncResult(IntEnum):
    """Outcome of reconciling a single file."""

    SUCCESS = 1
    BAD_FILE = 2
    UNMODIFIED = 3


class FileState(str, Enum):
    """How a file on disk relates to the library."""

    NEW = "new"  # No Song with this identity yet
    CHANGED = "changed"  # Song exists, stored mtime differs
    UNCHANGED = "unchanged"


@dataclass
class Artist:
    """Artist entity, keyed by normalized name."""

    id: str
    name: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    UNKNOWN_NAME = UNKNOWN_ARTIST_NAME
    VARIOUS_NAME = VARIOUS_ARTISTS_NAME

    def __post_init__(self) -> None:
        """Validate artist data."""
        if not self.name or not self.name.strip():
            raise ValueError("Artist name cannot be empty")

    @property
    def is_unknown(self) -> bool:
        """Check if this is the "Unknown Artist" sentinel."""
        return self.name == UNKNOWN_ARTIST_NAME

    @property
    def is_various(self) -> bool:
        """Check if this is the "Various Artists" sentinel used for compilations."""
        return self.name == VARIOUS_ARTISTS_NAME


# Yo, Album is keyed by (artist_id, name, is_compilation). cover holds the FILENAME inside the
# artwork directory (not a full path), empty string = no cover yet. The cover resolver only
# ever fills an empty cover - it never replaces one.
@dataclass
class Album:
    """Album entity representing a music album."""

    id: str
    artist_id: str
    name: str
    is_compilation: bool = False
    cover: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    UNKNOWN_NAME = UNKNOWN_ALBUM_NAME

    def __post_init__(self) -> None:
        """Validate album data."""
        if not self.name or not self.name.strip():
            raise ValueError("Album name cannot be empty")

    @property
    def has_cover(self) -> bool:
        """Check if the album already has cover art."""
        return bool(self.cover)

    @property
    def is_unknown(self) -> bool:
        return self.name == UNKNOWN_ALBUM_NAME

    def set_cover(self, filename: str) -> None:
        """Attach a stored cover file."""
        if not filename:
            raise ValueError("Cover filename cannot be empty")
        self.cover = filename
        self.updated_at = datetime.now(UTC)

    def mark_compilation(self, is_compilation: bool, artist_id: str | None = None) -> None:
        """Re-flag the album's compilation status in place, optionally handing it to a new owner."""
        self.is_compilation = is_compilation
        if artist_id is not None:
            self.artist_id = artist_id
        self.updated_at = datetime.now(UTC)


@dataclass
class Song:
    """Song entity keyed by the TrackIdentity of its path.

    Hey future me - id is the md5 hex of the absolute path (see TrackIdentity), NOT a UUID.
    The reconciler creates and updates Songs but never deletes them.
    """

    id: str
    path: str
    title: str
    length: float
    mtime: int
    album_id: str
    artist_id: str
    track: int = 0
    disc: int = 1
    lyrics: str = ""
    storage: str = SongStorageType.LOCAL.value
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate song data."""
        if not self.path:
            raise ValueError("Song path cannot be empty")
        if self.length < 0:
            raise ValueError("Song length cannot be negative")

    @property
    def display_title(self) -> str:
        """Title, or the filename without extension if the title is blank."""
        if self.title:
            return self.title
        return os.path.splitext(os.path.basename(self.path))[0]

    @property
    def storage_metadata(self) -> StorageMetadata:
        """Where the audio bytes live, parsed from storage + path."""
        return resolve_storage_metadata(self.storage, self.path)

    @property
    def s3_params(self) -> dict[str, str] | None:
        """Bucket and key for s3:// paths, None otherwise."""
        return parse_s3_params(self.path)

    # Listen, the sentinel artists ("Unknown Artist", "Various Artists") are left out of the
    # search document. Otherwise searching "various" returns half the library.
    def to_searchable_dict(
        self, artist: Artist | None = None, album: Album | None = None
    ) -> dict[str, Any]:
        """Build the search-index document for this song."""
        document: dict[str, Any] = {
            "id": self.id,
            "title": self.display_title,
        }
        if album is not None:
            document["album_name"] = album.name
        if artist is not None and not artist.is_unknown and not artist.is_various:
            document["artist_name"] = artist.name
        return document


__all__ = [
    "SyncResult",
    "FileState",
    "Artist",
    "Album",
    "Song",
]
