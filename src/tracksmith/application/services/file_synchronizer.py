"""Reconciles one audio file with its Song/Album/Artist records.

Hey future me - this is THE core of the library scanner. Per file:

    set_target(path)   -> identity hash, current mtime, existing Song lookup
    sync(tags, force)  -> UNMODIFIED | BAD_FILE | SUCCESS

State machine inside sync():

1. Not new, not changed, not forced         -> UNMODIFIED, no writes at all
2. Extraction fails                          -> BAD_FILE, message in get_sync_error()
3. New file                                  -> ALL tags applied, the allowlist is ignored.
                                                A first scan must fully tag a file.
4. Changed or forced                         -> only allowlisted tags are applied:
   - "compilation" without "album" implies "album", but ONLY to re-flag the current album
     (and hand it to its new owner). It never moves the song to another album.
   - no "artist" in the allowlist -> the song keeps its artist, the album keeps its owner
   - no "album" in the allowlist  -> keep the current album
   - path and mtime are always refreshed, otherwise a changed file would stay "changed"
5. Cover resolver runs for the album (no-op if it already has one)
6. Song upserted by identity -> SUCCESS

Steps 3-6 run in ONE session_scope() transaction, retried as a whole on SQLite lock errors.
"""

import asyncio
import logging
import os
from collections.abc import Sequence
from concurrent.futures import Executor
from dataclasses import replace
from typing import Any

from tracksmith.application.cache import BaseCache
from tracksmith.application.services.change_detector import ChangeDetector
from tracksmith.application.services.cover_resolver import CoverResolver
from tracksmith.application.services.metadata_extractor import MetadataExtractor
from tracksmith.config import Settings
from tracksmith.domain.entities import Album, Artist, FileState, Song, SyncResult
from tracksmith.domain.exceptions import (
    BadFileError,
    CoverStoreError,
    EntityNotFoundException,
    ValidationException,
)
from tracksmith.domain.value_objects import (
    VARIOUS_ARTISTS_NAME,
    RawTagSet,
    SongStorageType,
    TrackIdentity,
    printable_path,
)
from tracksmith.infrastructure.persistence import (
    AlbumRepository,
    ArtistRepository,
    Database,
    SongRepository,
    with_db_retry,
)
from tracksmith.infrastructure.storage import LocalCoverStore, LocalDirectoryLister

logger = logging.getLogger(__name__)


class FileSynchronizer:
    """Reconciler bound to one file at a time via set_target()."""

    def __init__(
        self,
        db: Database,
        extractor: MetadataExtractor,
        cover_resolver: CoverResolver,
        change_detector: ChangeDetector | None = None,
        executor: Executor | None = None,
    ) -> None:
        """Initialize synchronizer.

        Args:
            db: Database used for lookups and the per-file transaction
            extractor: Tag reader
            cover_resolver: Cover art resolver (owns the directory-scan cache)
            change_detector: mtime reader/classifier
            executor: Thread pool for tag extraction (None = loop default)
        """
        self._db = db
        self._extractor = extractor
        self._cover_resolver = cover_resolver
        self._change_detector = change_detector or ChangeDetector()
        self._executor = executor

        self._path: str | None = None
        self._identity: TrackIdentity | None = None
        self._mtime: int = 0
        self._song: Song | None = None
        self._sync_error: str | None = None

    @classmethod
    def from_settings(
        cls,
        db: Database,
        settings: Settings,
        cache: BaseCache[str, str | None],
        executor: Executor | None = None,
    ) -> "FileSynchronizer":
        """Wire a synchronizer with the local filesystem adapters."""
        cover_resolver = CoverResolver(
            cover_store=LocalCoverStore(settings.storage.artwork_path),
            directory_lister=LocalDirectoryLister(),
            cache=cache,
            cache_ttl_seconds=settings.sync.cover_cache_ttl_seconds,
        )
        return cls(
            db=db,
            extractor=MetadataExtractor(),
            cover_resolver=cover_resolver,
            executor=executor,
        )

    # =========================================================================
    # TARGET + CLASSIFICATION
    # =========================================================================

    async def set_target(self, path: str | os.PathLike[str]) -> "FileSynchronizer":
        """Bind the synchronizer to a file.

        Computes the identity, reads the mtime (wall clock if unreadable), loads
        the existing Song and clears the previous sync error.

        Returns:
            self, so calls can be chained: await (await s.set_target(p)).sync()
        """
        self._path = os.path.abspath(os.fspath(path))
        self._identity = TrackIdentity.from_path(self._path)
        self._mtime = self._change_detector.read_mtime(self._path)
        self._sync_error = None

        async with self._db.session_scope() as session:
            self._song = await SongRepository(session).get_by_id(self._identity.value)

        return self

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def identity(self) -> TrackIdentity | None:
        return self._identity

    @property
    def song(self) -> Song | None:
        """Song as of set_target(), or as written by the last successful sync()."""
        return self._song

    def _state(self) -> FileState:
        self._require_target()
        return self._change_detector.classify(self._song, self._mtime)

    def is_file_new(self) -> bool:
        """No Song exists for this path yet."""
        return self._state() is FileState.NEW

    def is_file_changed(self) -> bool:
        """A Song exists but its stored mtime differs from the file's."""
        return self._state() is FileState.CHANGED

    def is_file_new_or_changed(self) -> bool:
        return self._state() is not FileState.UNCHANGED

    def get_sync_error(self) -> str | None:
        """Diagnostic of the last BAD_FILE outcome, None otherwise."""
        return self._sync_error

    def _require_target(self) -> str:
        if self._path is None or self._identity is None:
            raise ValidationException("No target file set, call set_target() first")
        return self._path

    # =========================================================================
    # EXTRACTION
    # =========================================================================

    async def get_file_info(self) -> RawTagSet | None:
        """Extract tags from the target file.

        Returns:
            The tag set, or None if the file is bad (see get_sync_error())
        """
        path = self._require_target()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self._executor, self._extractor.extract, path, self._mtime
            )
        except BadFileError as e:
            self._sync_error = e.message
            logger.info("Skipping bad file %s: %s", path, e.message)
            return None

    # =========================================================================
    # SYNC
    # =========================================================================

    async def sync(
        self, tags: Sequence[str] | None = None, force: bool = False
    ) -> SyncResult:
        """Reconcile the target file with the library.

        Args:
            tags: Allowlist of tag names applied to an existing song
                  (ignored for new files). None/empty = no tags.
            force: Re-sync even if the file is unchanged

        Returns:
            SyncResult.UNMODIFIED, SyncResult.BAD_FILE or SyncResult.SUCCESS
        """
        self._require_target()

        if not self.is_file_new_or_changed() and not force:
            return SyncResult.UNMODIFIED

        info = await self.get_file_info()
        if info is None:
            return SyncResult.BAD_FILE

        self._song = await self._reconcile(info, list(tags or []))
        return SyncResult.SUCCESS

    @with_db_retry(max_attempts=3)
    async def _reconcile(self, info: RawTagSet, tags: list[str]) -> Song:
        assert self._identity is not None and self._path is not None

        # Hey future me - the cover file is written BEFORE the transaction commits. If anything
        # below fails (including a lock error that with_db_retry replays) the row never points at
        # it, so it has to go or artwork_path fills up with orphans.
        stored_cover: str | None = None
        try:
            async with self._db.session_scope() as session:
                artists = ArtistRepository(session)
                albums = AlbumRepository(session)
                songs = SongRepository(session)

                # Re-read inside the transaction, another worker may have written it meanwhile
                existing = await songs.get_by_id(self._identity.value)

                if existing is None:
                    artist, album, song, cover = await self._resolve_new(info, artists, albums)
                else:
                    artist, album, song, cover = await self._resolve_existing(
                        info, tags, existing, artists, albums
                    )

                if not album.has_cover and await self._cover_resolver.ensure_cover(
                    album, cover, self._path
                ):
                    stored_cover = album.cover
                    await albums.update(album)

                saved = await songs.save(song)
        except Exception:
            if stored_cover is not None:
                await self._discard_cover(stored_cover)
            raise

        logger.info(
            "Synced %s -> '%s' by '%s' on '%s' (%s)",
            saved.path,
            saved.title,
            artist.name,
            album.name,
            "created" if existing is None else "updated",
        )
        return saved

    async def _discard_cover(self, filename: str) -> None:
        try:
            await self._cover_resolver.discard(filename)
        except CoverStoreError as e:
            # The sync error is what the caller needs to see, this one only gets logged
            logger.warning("Could not remove orphaned cover %s: %s", filename, e.message)

    async def _resolve_new(
        self,
        info: RawTagSet,
        artists: ArtistRepository,
        albums: AlbumRepository,
    ) -> tuple[Artist, Album, Song, Any]:
        """New file: every extracted tag is used, whatever the allowlist says."""
        assert self._identity is not None and self._path is not None

        artist = await artists.get_or_create(info.artist)
        album = await albums.get_or_create(artist, info.album, info.compilation)
        song = Song(
            id=self._identity.value,
            path=printable_path(self._path),
            title=info.title,
            length=info.length,
            mtime=info.mtime,
            album_id=album.id,
            artist_id=artist.id,
            track=info.track,
            disc=info.disc,
            lyrics=info.lyrics,
            storage=SongStorageType.LOCAL.value,
        )
        return artist, album, song, info.cover

    async def _resolve_existing(
        self,
        info: RawTagSet,
        tags: list[str],
        existing: Song,
        artists: ArtistRepository,
        albums: AlbumRepository,
    ) -> tuple[Artist, Album, Song, Any]:
        """Changed or forced: apply only the allowlisted tags.

        Two artists are in play here. The song artist is what goes on the Song row and only
        changes when "artist" is allowlisted. The album owner is used to resolve the album and
        is the current album's owner unless "artist" is allowlisted. For a compilation that
        owner is "Various Artists", which must never leak onto the Song.
        """
        assert self._path is not None

        applied = set(tags)
        compilation_album_only = False
        if "compilation" in applied and "album" not in applied:
            applied.add("album")
            compilation_album_only = True

        unknown = applied - RawTagSet.field_names()
        if unknown:
            logger.debug("Ignoring unknown tag names in allowlist: %s", sorted(unknown))

        data = {key: value for key, value in info.as_dict().items() if key in applied}

        current_album = await albums.get_by_id(existing.album_id)
        if current_album is None:
            raise EntityNotFoundException("Album", existing.album_id)

        if "artist" in data:
            song_artist = await artists.get_or_create(data["artist"])
            album_owner = song_artist
        else:
            song_artist = await self._require_artist(artists, existing.artist_id)
            album_owner = await self._require_artist(artists, current_album.artist_id)

        if compilation_album_only:
            album = current_album
            await self._reflag_compilation(
                artists, albums, album, info.compilation, song_artist
            )
        elif "album" in data:
            is_compilation = data.get("compilation", current_album.is_compilation)
            if not is_compilation and album_owner.is_various:
                album_owner = song_artist
            album = await albums.get_or_create(album_owner, data["album"], is_compilation)
        else:
            album = current_album

        song = replace(
            existing,
            path=printable_path(self._path),
            mtime=info.mtime,
            title=data.get("title", existing.title),
            length=data.get("length", existing.length),
            track=data.get("track", existing.track),
            disc=data.get("disc", existing.disc),
            lyrics=data.get("lyrics", existing.lyrics),
            album_id=album.id,
            artist_id=song_artist.id,
        )
        return song_artist, album, song, data.get("cover")

    @staticmethod
    async def _require_artist(artists: ArtistRepository, artist_id: str) -> Artist:
        artist = await artists.get_by_id(artist_id)
        if artist is None:
            raise EntityNotFoundException("Artist", artist_id)
        return artist

    async def _reflag_compilation(
        self,
        artists: ArtistRepository,
        albums: AlbumRepository,
        album: Album,
        is_compilation: bool,
        song_artist: Artist,
    ) -> None:
        """Flip the compilation flag of the song's current album in place.

        Ownership follows the same rule as get_or_create(): a compilation belongs to
        "Various Artists", a regular album to the artist of the song being synced.
        Otherwise the next new track of this album would resolve to a second row.
        """
        if album.is_compilation == is_compilation:
            return

        if is_compilation:
            owner = await artists.get_or_create(VARIOUS_ARTISTS_NAME)
        else:
            owner = song_artist

        # Hey future me - (artist, name, is_compilation) is unique. If a twin album already holds
        # the target key we leave ours alone rather than merge or move the song.
        twin = await albums.get_by_natural_key(owner.id, album.name, is_compilation)
        if twin is not None and twin.id != album.id:
            logger.warning(
                "Not re-flagging album '%s' as compilation=%s: album %s already has that key",
                album.name,
                is_compilation,
                twin.id,
            )
            return

        album.mark_compilation(is_compilation, owner.id)
        await albums.update(album)
