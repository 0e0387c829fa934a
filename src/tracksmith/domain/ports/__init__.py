"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from tracksmith.domain.entities import Album, Artist, Song


# Hey future me, these are PORTS (Hexagonal Architecture). Services depend on the interfaces,
# the SQLAlchemy implementations live in infrastructure/persistence. Repositories stage changes
# on their session and never commit - the caller's session_scope() owns the transaction.
class IArtistRepository(ABC):
    """Repository interface for Artist entities."""

    @abstractmethod
    async def get_by_id(self, artist_id: str) -> Artist | None:
        """Get an artist by ID."""
        pass

    @abstractmethod
    async def get_by_name(self, name: str) -> Artist | None:
        """Get an artist by exact (normalized) name."""
        pass

    @abstractmethod
    async def get_or_create(self, name: str | None) -> Artist:
        """Look up an artist by natural key, creating it atomically if missing.

        Blank names resolve to the Unknown Artist, VA spellings to Various Artists.
        """
        pass


class IAlbumRepository(ABC):
    """Repository interface for Album entities."""

    @abstractmethod
    async def get_by_id(self, album_id: str) -> Album | None:
        """Get an album by ID."""
        pass

    @abstractmethod
    async def get_by_natural_key(
        self, artist_id: str, name: str, is_compilation: bool
    ) -> Album | None:
        """Get an album by (artist, name, compilation flag)."""
        pass

    @abstractmethod
    async def get_or_create(
        self, artist: Artist, name: str | None, is_compilation: bool = False
    ) -> Album:
        """Look up an album by natural key, creating it atomically if missing."""
        pass

    @abstractmethod
    async def update(self, album: Album) -> None:
        """Persist changed album fields (cover, compilation flag)."""
        pass


class ISongRepository(ABC):
    """Repository interface for Song entities."""

    @abstractmethod
    async def get_by_id(self, song_id: str) -> Song | None:
        """Get a song by its TrackIdentity value."""
        pass

    @abstractmethod
    async def save(self, song: Song) -> Song:
        """Create or update the song row keyed by song.id.

        Returns the song as stored (after title/lyrics normalization).
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count all songs."""
        pass


class IDirectoryLister(ABC):
    """Filesystem listing used for cover lookup and library walks."""

    @abstractmethod
    def list_files(self, directory: Path) -> list[Path]:
        """List regular files directly inside a directory (depth 0).

        Symlinks are followed. Unreadable directories yield an empty list.
        """
        pass

    @abstractmethod
    def walk(self, root: Path, extensions: Iterable[str]) -> list[Path]:
        """Recursively find files whose suffix is in extensions."""
        pass


class ICoverStore(ABC):
    """Where album cover images are kept."""

    @abstractmethod
    def store_bytes(self, data: bytes, extension: str) -> str:
        """Write image bytes, return the stored filename."""
        pass

    @abstractmethod
    def store_file(self, source: Path) -> str:
        """Copy an image file into the store, return the stored filename."""
        pass

    @abstractmethod
    def delete(self, filename: str) -> None:
        """Remove a stored cover (no-op if it is already gone)."""
        pass

    @abstractmethod
    def is_valid_image(self, path: Path) -> bool:
        """Check if a file decodes as an image."""
        pass


__all__ = [
    "IArtistRepository",
    "IAlbumRepository",
    "ISongRepository",
    "IDirectoryLister",
    "ICoverStore",
]
