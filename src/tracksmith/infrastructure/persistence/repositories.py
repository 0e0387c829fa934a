"""Repository implementations for the music library."""

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tracksmith.domain.entities import Album, Artist, Song
from tracksmith.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundException,
)
from tracksmith.domain.ports import IAlbumRepository, IArtistRepository, ISongRepository
from tracksmith.domain.value_objects import (
    VARIOUS_ARTISTS_NAME,
    normalize_album_name,
    normalize_artist_name,
)
from tracksmith.infrastructure.persistence.models import (
    AlbumModel,
    ArtistModel,
    Base,
    SongModel,
    ensure_utc_aware,
    utc_now,
)

logger = logging.getLogger(__name__)


# Hey future me - get-or-create is INSERT ... ON CONFLICT DO NOTHING followed by a SELECT.
# Both SQLite and PostgreSQL support that syntax, but SQLAlchemy exposes it per dialect, so we
# pick the right insert() from the session's bind. If you add MySQL, this needs
# on_duplicate_key_update instead.
def _conflict_ignoring_insert(session: AsyncSession, model: type[Base]) -> Any:
    """Build a dialect-specific INSERT that supports on_conflict_do_nothing()."""
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert(model)
    if dialect == "postgresql":
        return postgresql_insert(model)
    raise ConfigurationError(f"Unsupported database dialect for get-or-create: {dialect}")


class ArtistRepository(IArtistRepository):
    """SQLAlchemy implementation of Artist repository."""

    # Hey future me, this is the Repository pattern! The session is injected and NOT committed
    # here - FileSynchronizer's session_scope() commits once per file. Repos only stage changes.
    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @staticmethod
    def _model_to_entity(model: ArtistModel) -> Artist:
        return Artist(
            id=model.id,
            name=model.name,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    async def _get_model_by_name(self, name: str) -> ArtistModel | None:
        stmt = select(ArtistModel).where(ArtistModel.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, artist_id: str) -> Artist | None:
        """Get an artist by ID."""
        model = await self.session.get(ArtistModel, artist_id)
        if not model:
            return None
        return self._model_to_entity(model)

    async def get_by_name(self, name: str) -> Artist | None:
        """Get an artist by name."""
        model = await self._get_model_by_name(normalize_artist_name(name))
        if not model:
            return None
        return self._model_to_entity(model)

    # Listen up, the first SELECT is the fast path (artist already known - the common case during
    # a rescan). Only on a miss do we INSERT, and the conflict clause makes a concurrent insert of
    # the same name a no-op. The second SELECT then sees whichever row won.
    async def get_or_create(self, name: str | None) -> Artist:
        """Get an artist by natural key or create it."""
        normalized = normalize_artist_name(name)

        model = await self._get_model_by_name(normalized)
        if model:
            return self._model_to_entity(model)

        now = utc_now()
        stmt = (
            _conflict_ignoring_insert(self.session, ArtistModel)
            .values(id=str(uuid.uuid4()), name=normalized, created_at=now, updated_at=now)
            .on_conflict_do_nothing(index_elements=["name"])
        )
        await self.session.execute(stmt)

        model = await self._get_model_by_name(normalized)
        if not model:
            raise EntityNotFoundException("Artist", normalized)

        logger.debug("Resolved artist '%s' (id=%s)", normalized, model.id)
        return self._model_to_entity(model)


class AlbumRepository(IAlbumRepository):
    """SQLAlchemy implementation of Album repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session
        self._artists = ArtistRepository(session)

    @staticmethod
    def _model_to_entity(model: AlbumModel) -> Album:
        return Album(
            id=model.id,
            artist_id=model.artist_id,
            name=model.name,
            is_compilation=model.is_compilation,
            cover=model.cover or "",
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    async def _get_model_by_natural_key(
        self, artist_id: str, name: str, is_compilation: bool
    ) -> AlbumModel | None:
        stmt = select(AlbumModel).where(
            AlbumModel.artist_id == artist_id,
            AlbumModel.name == name,
            AlbumModel.is_compilation == is_compilation,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, album_id: str) -> Album | None:
        """Get an album by ID."""
        model = await self.session.get(AlbumModel, album_id)
        if not model:
            return None
        return self._model_to_entity(model)

    async def get_by_natural_key(
        self, artist_id: str, name: str, is_compilation: bool
    ) -> Album | None:
        """Get an album by (artist, name, compilation flag)."""
        model = await self._get_model_by_natural_key(
            artist_id, normalize_album_name(name), is_compilation
        )
        if not model:
            return None
        return self._model_to_entity(model)

    # Hey future me - compilations always belong to "Various Artists", whatever artist the
    # caller resolved from the track tags. The track artist still goes on the Song row.
    async def get_or_create(
        self, artist: Artist, name: str | None, is_compilation: bool = False
    ) -> Album:
        """Get an album by natural key or create it."""
        if is_compilation and not artist.is_various:
            artist = await self._artists.get_or_create(VARIOUS_ARTISTS_NAME)

        normalized = normalize_album_name(name)

        model = await self._get_model_by_natural_key(artist.id, normalized, is_compilation)
        if model:
            return self._model_to_entity(model)

        now = utc_now()
        stmt = (
            _conflict_ignoring_insert(self.session, AlbumModel)
            .values(
                id=str(uuid.uuid4()),
                artist_id=artist.id,
                name=normalized,
                is_compilation=is_compilation,
                cover="",
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(
                index_elements=["artist_id", "name", "is_compilation"]
            )
        )
        await self.session.execute(stmt)

        model = await self._get_model_by_natural_key(artist.id, normalized, is_compilation)
        if not model:
            raise EntityNotFoundException("Album", f"{artist.name} / {normalized}")

        logger.debug(
            "Resolved album '%s' by '%s' (id=%s, compilation=%s)",
            normalized,
            artist.name,
            model.id,
            is_compilation,
        )
        return self._model_to_entity(model)

    async def update(self, album: Album) -> None:
        """Update an existing album."""
        model = await self.session.get(AlbumModel, album.id)
        if not model:
            raise EntityNotFoundException("Album", album.id)

        model.artist_id = album.artist_id
        model.cover = album.cover
        model.is_compilation = album.is_compilation
        model.updated_at = album.updated_at


class SongRepository(ISongRepository):
    """SQLAlchemy implementation of Song repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @staticmethod
    def _model_to_entity(model: SongModel) -> Song:
        return Song(
            id=model.id,
            path=model.path,
            title=model.title,
            length=model.length,
            mtime=model.mtime,
            album_id=model.album_id,
            artist_id=model.artist_id,
            track=model.track,
            disc=model.disc,
            lyrics=model.lyrics,
            storage=model.storage,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    async def get_by_id(self, song_id: str) -> Song | None:
        """Get a song by ID."""
        model = await self.session.get(SongModel, song_id)
        if not model:
            return None
        return self._model_to_entity(model)

    # Yo, this is the "updateOrCreate keyed by identity" step. path MUST be assigned before title:
    # the title validator falls back to the filename stem and reads self.path to get it.
    async def save(self, song: Song) -> Song:
        """Create or update a song row."""
        model = await self.session.get(SongModel, song.id)
        if model is None:
            model = SongModel(id=song.id, path=song.path, created_at=utc_now())
            self.session.add(model)
        else:
            model.path = song.path

        model.title = song.title
        model.length = song.length
        model.track = song.track
        model.disc = song.disc
        model.lyrics = song.lyrics
        model.mtime = song.mtime
        model.storage = song.storage
        model.album_id = song.album_id
        model.artist_id = song.artist_id
        model.updated_at = utc_now()

        await self.session.flush()
        return self._model_to_entity(model)

    async def count(self) -> int:
        """Count all songs."""
        stmt = select(func.count()).select_from(SongModel)
        result = await self.session.execute(stmt)
        return result.scalar_one()
