"""Unit tests for FileSynchronizer.

Hey future me - these drive the whole reconcile path against a real SQLite file, real files in
tmp_path (for mtimes and sibling covers) and the real cover store. Only tag extraction is
stubbed: StubExtractor hands out whatever RawTagSet a test registered for a path.
"""

import hashlib
import logging
import os
import sys
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from tracksmith.application.cache import InMemoryCache
from tracksmith.application.services.cover_resolver import CoverResolver
from tracksmith.application.services.file_synchronizer import FileSynchronizer
from tracksmith.domain.entities import Album, Artist, Song, SyncResult
from tracksmith.domain.exceptions import BadFileError, CoverStoreError, ValidationException
from tracksmith.domain.value_objects import (
    VARIOUS_ARTISTS_NAME,
    EmbeddedCover,
    RawTagSet,
    TrackIdentity,
)
from tracksmith.infrastructure.persistence import (
    AlbumModel,
    AlbumRepository,
    ArtistRepository,
    Database,
    SongRepository,
)
from tracksmith.infrastructure.storage import LocalCoverStore, LocalDirectoryLister


class StubExtractor:
    """Stands in for MetadataExtractor, keyed by absolute path."""

    def __init__(self) -> None:
        self.tags: dict[str, dict[str, Any]] = {}
        self.errors: dict[str, str] = {}
        self.calls = 0

    def register(self, path: Path, **values: Any) -> None:
        self.tags[str(path)] = values

    def fail(self, path: Path, message: str) -> None:
        self.errors[str(path)] = message

    def extract(self, path: str, mtime: int) -> RawTagSet:
        self.calls += 1
        if path in self.errors:
            raise BadFileError(path, self.errors[path])
        values = {"title": Path(path).stem, "length": 180.0, **self.tags[path]}
        return RawTagSet(path=path, mtime=mtime, **values)


@pytest.fixture
def extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture
def cover_store(artwork_path: Path) -> LocalCoverStore:
    return LocalCoverStore(artwork_path)


@pytest.fixture
def make_synchronizer(
    db: Database,
    extractor: StubExtractor,
    cover_store: LocalCoverStore,
    cover_cache: InMemoryCache[str, str | None],
):
    resolver = CoverResolver(cover_store, LocalDirectoryLister(), cover_cache, 60)

    def _make() -> FileSynchronizer:
        return FileSynchronizer(db=db, extractor=extractor, cover_resolver=resolver)

    return _make


async def load(db: Database, path: Path) -> tuple[Song | None, Album | None, Artist | None]:
    """Song for a path plus its album and artist."""
    async with db.session_scope() as session:
        song = await SongRepository(session).get_by_id(TrackIdentity.from_path(path).value)
        if song is None:
            return None, None, None
        album = await AlbumRepository(session).get_by_id(song.album_id)
        artist = await ArtistRepository(session).get_by_id(song.artist_id)
        return song, album, artist


async def song_count(db: Database) -> int:
    async with db.session_scope() as session:
        return await SongRepository(session).count()


async def sync_file(make_synchronizer, path: Path, **kwargs: Any) -> SyncResult:
    synchronizer = await make_synchronizer().set_target(path)
    return await synchronizer.sync(**kwargs)


def touch(path: Path, mtime: int) -> None:
    os.utime(path, (mtime, mtime))


class TestFirstScan:
    """New files are fully tagged."""

    async def test_example_scenario(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        """/music/Foo/01 Bar.mp3 with artist A, album B, title Bar, track 1."""
        path = make_audio_file(music_path / "Foo" / "01 Bar.mp3", mtime=1_000)
        extractor.register(path, artist="A", album="B", title="Bar", track=1)

        synchronizer = await make_synchronizer().set_target(path)
        assert synchronizer.is_file_new()
        assert synchronizer.is_file_new_or_changed()
        assert not synchronizer.is_file_changed()

        result = await synchronizer.sync()

        assert result is SyncResult.SUCCESS
        song, album, artist = await load(db, path)
        assert artist is not None and artist.name == "A"
        assert album is not None and album.name == "B"
        assert album.is_compilation is False
        assert album.artist_id == artist.id
        assert song is not None
        assert song.title == "Bar"
        assert song.track == 1
        assert song.mtime == 1_000
        assert song.path == str(path)
        assert song.id == TrackIdentity.from_path(path).value
        assert song.storage == "local"
        assert synchronizer.song is not None
        assert synchronizer.song.id == song.id
        assert synchronizer.get_sync_error() is None

    async def test_new_file_ignores_allowlist(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        extractor.register(path, artist="A", album="B", title="T", track=3, disc=2)

        assert await sync_file(make_synchronizer, path, tags=["title"]) is SyncResult.SUCCESS

        song, album, artist = await load(db, path)
        assert song is not None and album is not None and artist is not None
        assert (artist.name, album.name, song.track, song.disc) == ("A", "B", 3, 2)

    async def test_untagged_file_lands_on_sentinels(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "07 Mystery.mp3", mtime=1_000)
        extractor.register(path)

        await sync_file(make_synchronizer, path)

        song, album, artist = await load(db, path)
        assert artist is not None and artist.is_unknown
        assert album is not None and album.is_unknown
        assert song is not None and song.title == "07 Mystery"

    async def test_compilation_album_owned_by_various_artists(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "Mix" / "01.mp3", mtime=1_000)
        extractor.register(path, artist="A", albumartist="Various Artists", album="Mix",
                           compilation=True)

        await sync_file(make_synchronizer, path)

        song, album, artist = await load(db, path)
        assert artist is not None and artist.name == "A"
        assert album is not None and album.is_compilation
        async with db.session_scope() as session:
            owner = await ArtistRepository(session).get_by_id(album.artist_id)
        assert owner is not None and owner.is_various

    async def test_tracks_of_one_album_share_rows(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        first = make_audio_file(music_path / "Foo" / "01.mp3", mtime=1_000)
        second = make_audio_file(music_path / "Foo" / "02.mp3", mtime=1_000)
        extractor.register(first, artist="A", album="B", track=1)
        extractor.register(second, artist="A", album="B", track=2)

        await sync_file(make_synchronizer, first)
        await sync_file(make_synchronizer, second)

        song_one, album_one, _ = await load(db, first)
        song_two, album_two, _ = await load(db, second)
        assert song_one is not None and song_two is not None
        assert album_one == album_two
        assert song_one.artist_id == song_two.artist_id
        assert await song_count(db) == 2

    async def test_lyrics_normalized(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        extractor.register(path, lyrics="[02:15.30]Hello<br>World")

        await sync_file(make_synchronizer, path)

        song, _, _ = await load(db, path)
        assert song is not None and song.lyrics == "Hello\nWorld"


class TestUnmodified:
    """Unchanged files are skipped without any writes."""

    async def test_second_sync_is_unmodified(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        extractor.register(path, artist="A", album="B")
        await sync_file(make_synchronizer, path)
        before, _, _ = await load(db, path)
        calls = extractor.calls

        # Tags changed inside the file but the mtime did not - nothing is read or written
        extractor.register(path, artist="Z", album="Y", title="Other")
        synchronizer = await make_synchronizer().set_target(path)
        assert not synchronizer.is_file_new_or_changed()

        result = await synchronizer.sync(tags=["title", "artist", "album"])

        assert result is SyncResult.UNMODIFIED
        assert extractor.calls == calls
        after, _, _ = await load(db, path)
        assert after == before

    async def test_force_resyncs_unchanged_file(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        extractor.register(path, title="Old")
        await sync_file(make_synchronizer, path)

        extractor.register(path, title="New")
        result = await sync_file(make_synchronizer, path, tags=["title"], force=True)

        assert result is SyncResult.SUCCESS
        song, _, _ = await load(db, path)
        assert song is not None and song.title == "New"


class TestChangedFile:
    """Changed files only take allowlisted tags."""

    async def _seed(self, extractor, make_synchronizer, path: Path) -> None:
        extractor.register(path, artist="A", album="B", title="Bar", track=1,
                           lyrics="old words")
        await sync_file(make_synchronizer, path)

    async def test_title_only_allowlist(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        await self._seed(extractor, make_synchronizer, path)
        before, album_before, artist_before = await load(db, path)

        extractor.register(path, artist="Z", album="Y", title="Bar (Remix)", track=9,
                           lyrics="new words")
        touch(path, 2_000)
        synchronizer = await make_synchronizer().set_target(path)
        assert synchronizer.is_file_changed()

        result = await synchronizer.sync(tags=["title"])

        assert result is SyncResult.SUCCESS
        after, album_after, artist_after = await load(db, path)
        assert after is not None and before is not None
        assert after.title == "Bar (Remix)"
        assert after.track == before.track == 1
        assert after.lyrics == "old words"
        assert album_after == album_before
        assert artist_after == artist_before
        assert after.mtime == 2_000
        # The refreshed mtime makes the next pass a no-op
        assert await sync_file(make_synchronizer, path, tags=["title"]) is SyncResult.UNMODIFIED

    async def test_empty_allowlist_only_refreshes_mtime(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        await self._seed(extractor, make_synchronizer, path)
        before, _, _ = await load(db, path)

        extractor.register(path, artist="Z", album="Y", title="Changed")
        touch(path, 3_000)
        assert await sync_file(make_synchronizer, path) is SyncResult.SUCCESS

        after, _, _ = await load(db, path)
        assert after is not None and before is not None
        assert after.title == before.title
        assert after.album_id == before.album_id
        assert after.mtime == 3_000

    async def test_artist_and_album_allowlist_moves_song(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        await self._seed(extractor, make_synchronizer, path)
        _, old_album, _ = await load(db, path)

        extractor.register(path, artist="Z", album="Y", title="Bar")
        touch(path, 2_000)
        await sync_file(make_synchronizer, path, tags=["artist", "album"])

        _, album, artist = await load(db, path)
        assert artist is not None and artist.name == "Z"
        assert album is not None and album.name == "Y"
        assert album.artist_id == artist.id
        assert old_album is not None and album.id != old_album.id

    async def test_album_without_artist_keeps_current_artist(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        await self._seed(extractor, make_synchronizer, path)

        extractor.register(path, artist="Z", album="Y")
        touch(path, 2_000)
        await sync_file(make_synchronizer, path, tags=["album"])

        _, album, artist = await load(db, path)
        assert artist is not None and artist.name == "A"
        assert album is not None and album.name == "Y"
        assert album.artist_id == artist.id

    async def test_compilation_only_reflags_current_album(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        await self._seed(extractor, make_synchronizer, path)
        _, album_before, _ = await load(db, path)

        # The file now also claims another album name - that must NOT move the song
        extractor.register(path, artist="A", album="Somewhere Else", compilation=True)
        touch(path, 2_000)
        await sync_file(make_synchronizer, path, tags=["compilation"])

        song, album, _ = await load(db, path)
        assert album_before is not None and album is not None and song is not None
        assert song.album_id == album_before.id
        assert album.id == album_before.id
        assert album.name == "B"
        assert album.is_compilation is True

    async def test_compilation_only_leaves_album_when_twin_exists(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file, caplog: pytest.LogCaptureFixture,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        await self._seed(extractor, make_synchronizer, path)
        _, album_before, _ = await load(db, path)
        assert album_before is not None
        async with db.session_scope() as session:
            various = await ArtistRepository(session).get_or_create(VARIOUS_ARTISTS_NAME)
            session.add(
                AlbumModel(
                    id="twin-album",
                    artist_id=various.id,
                    name="B",
                    is_compilation=True,
                )
            )

        extractor.register(path, artist="A", album="B", compilation=True)
        touch(path, 2_000)
        with caplog.at_level(logging.WARNING):
            result = await sync_file(make_synchronizer, path, tags=["compilation"])

        assert result is SyncResult.SUCCESS
        song, album, _ = await load(db, path)
        assert song is not None and album is not None
        assert album.id == album_before.id
        assert album.is_compilation is False
        assert "Not re-flagging album" in caplog.text

    async def test_title_resync_of_compilation_keeps_track_artist(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "Comp" / "01.mp3", mtime=1_000)
        extractor.register(path, artist="A", albumartist="Someone", album="Comp",
                           compilation=True, title="Old")
        await sync_file(make_synchronizer, path)
        before, album_before, _ = await load(db, path)

        extractor.register(path, artist="A", albumartist="Someone", album="Comp",
                           compilation=True, title="New")
        touch(path, 2_000)
        assert await sync_file(make_synchronizer, path, tags=["title"]) is SyncResult.SUCCESS

        after, album_after, artist_after = await load(db, path)
        assert before is not None and after is not None
        assert after.title == "New"
        assert after.artist_id == before.artist_id
        assert artist_after is not None and artist_after.name == "A"
        assert album_after == album_before

    async def test_album_resync_of_compilation_keeps_track_artist(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "Comp" / "01.mp3", mtime=1_000)
        extractor.register(path, artist="A", album="Comp", compilation=True)
        await sync_file(make_synchronizer, path)

        extractor.register(path, artist="A", album="Comp 2", compilation=True)
        touch(path, 2_000)
        await sync_file(make_synchronizer, path, tags=["album"])

        _, album, artist = await load(db, path)
        assert artist is not None and artist.name == "A"
        assert album is not None and album.name == "Comp 2" and album.is_compilation
        async with db.session_scope() as session:
            owner = await ArtistRepository(session).get_by_id(album.artist_id)
        assert owner is not None and owner.is_various

    async def test_compilation_reflag_hands_album_to_various_artists(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        first = make_audio_file(music_path / "B" / "01.mp3", mtime=1_000)
        await self._seed(extractor, make_synchronizer, first)

        extractor.register(first, artist="A", album="B", compilation=True)
        touch(first, 2_000)
        await sync_file(make_synchronizer, first, tags=["compilation"])

        song_one, album_one, artist_one = await load(db, first)
        assert song_one is not None and album_one is not None and artist_one is not None
        assert artist_one.name == "A"
        async with db.session_scope() as session:
            owner = await ArtistRepository(session).get_by_id(album_one.artist_id)
        assert owner is not None and owner.is_various

        # A track of the same compilation scanned afterwards lands on the same album
        second = make_audio_file(music_path / "B" / "02.mp3", mtime=1_000)
        extractor.register(second, artist="A", album="B", compilation=True)
        await sync_file(make_synchronizer, second)

        _, album_two, _ = await load(db, second)
        assert album_two is not None and album_two.id == album_one.id

    async def test_compilation_unflag_returns_album_to_track_artist(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        first = make_audio_file(music_path / "Mix" / "01.mp3", mtime=1_000)
        extractor.register(first, artist="A", album="Mix", compilation=True)
        await sync_file(make_synchronizer, first)

        extractor.register(first, artist="A", album="Mix", compilation=False)
        touch(first, 2_000)
        await sync_file(make_synchronizer, first, tags=["compilation"])

        _, album_one, artist_one = await load(db, first)
        assert album_one is not None and artist_one is not None
        assert album_one.is_compilation is False
        assert album_one.artist_id == artist_one.id

        second = make_audio_file(music_path / "Mix" / "02.mp3", mtime=1_000)
        extractor.register(second, artist="A", album="Mix")
        await sync_file(make_synchronizer, second)

        _, album_two, _ = await load(db, second)
        assert album_two is not None and album_two.id == album_one.id


class TestBadFile:
    """Extraction failures never escape sync()."""

    async def test_bad_file_reported(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "broken.mp3", mtime=1_000)
        extractor.fail(path, "No playtime found")

        synchronizer = await make_synchronizer().set_target(path)
        result = await synchronizer.sync()

        assert result is SyncResult.BAD_FILE
        assert synchronizer.get_sync_error() == "No playtime found"
        assert await song_count(db) == 0

    async def test_get_file_info_returns_none(
        self, extractor: StubExtractor, make_synchronizer, music_path: Path, make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "broken.mp3")
        extractor.fail(path, "Unsupported")

        synchronizer = await make_synchronizer().set_target(path)

        assert await synchronizer.get_file_info() is None
        assert synchronizer.get_sync_error() == "Unsupported"

    async def test_set_target_clears_previous_error(
        self, extractor: StubExtractor, make_synchronizer, music_path: Path, make_audio_file,
    ) -> None:
        broken = make_audio_file(music_path / "broken.mp3")
        good = make_audio_file(music_path / "good.mp3")
        extractor.fail(broken, "boom")
        extractor.register(good)

        synchronizer = make_synchronizer()
        await synchronizer.set_target(broken)
        await synchronizer.sync()
        await synchronizer.set_target(good)

        assert synchronizer.get_sync_error() is None
        assert await synchronizer.sync() is SyncResult.SUCCESS

    async def test_sync_without_target_raises(self, make_synchronizer) -> None:
        with pytest.raises(ValidationException):
            await make_synchronizer().sync()

    async def test_unreadable_mtime_makes_file_look_changed(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        extractor.register(path)
        await sync_file(make_synchronizer, path)

        with patch(
            "tracksmith.application.services.change_detector.os.path.getmtime",
            side_effect=OSError("stat failed"),
        ):
            synchronizer = await make_synchronizer().set_target(path)

        assert synchronizer.is_file_changed()


class TestCovers:
    """Cover art resolution during sync."""

    async def test_embedded_cover_stored(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        artwork_path: Path, make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "Foo" / "01.mp3", mtime=1_000)
        extractor.register(path, album="B", cover=EmbeddedCover(b"img", "image/jpeg"))

        await sync_file(make_synchronizer, path)

        _, album, _ = await load(db, path)
        assert album is not None and album.cover.endswith(".jpeg")
        assert (artwork_path / album.cover).read_bytes() == b"img"

    async def test_cover_never_replaced(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        first = make_audio_file(music_path / "Foo" / "01.mp3", mtime=1_000)
        second = make_audio_file(music_path / "Foo" / "02.mp3", mtime=1_000)
        extractor.register(first, album="B", cover=EmbeddedCover(b"one", "image/png"))
        extractor.register(second, album="B", cover=EmbeddedCover(b"two", "image/png"))

        await sync_file(make_synchronizer, first)
        _, album_before, _ = await load(db, first)
        await sync_file(make_synchronizer, second)
        await sync_file(make_synchronizer, first, tags=["cover"], force=True)

        _, album_after, _ = await load(db, first)
        assert album_before is not None and album_after is not None
        assert album_after.cover == album_before.cover

    async def test_sibling_cover_used(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        artwork_path: Path, make_audio_file, make_image,
    ) -> None:
        path = make_audio_file(music_path / "Foo" / "01.mp3", mtime=1_000)
        make_image(music_path / "Foo" / "folder.png")
        extractor.register(path, album="B")

        await sync_file(make_synchronizer, path)

        _, album, _ = await load(db, path)
        assert album is not None and album.cover.endswith(".png")
        assert (artwork_path / album.cover).exists()

    async def test_cover_store_failure_rolls_back(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        extractor.register(path, artist="Rollback", album="B",
                           cover=EmbeddedCover(b"img", "image/png"))

        with (
            patch.object(
                LocalCoverStore, "store_bytes", side_effect=CoverStoreError("disk full")
            ),
            pytest.raises(CoverStoreError),
        ):
            await sync_file(make_synchronizer, path)

        assert await song_count(db) == 0
        async with db.session_scope() as session:
            assert await ArtistRepository(session).get_by_name("Rollback") is None

    async def test_cover_removed_when_transaction_fails(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        artwork_path: Path, make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        extractor.register(path, album="B", cover=EmbeddedCover(b"img", "image/png"))

        with (
            patch.object(SongRepository, "save", side_effect=RuntimeError("write failed")),
            pytest.raises(RuntimeError),
        ):
            await sync_file(make_synchronizer, path)

        assert await song_count(db) == 0
        assert list(artwork_path.iterdir()) == []

    async def test_lock_retry_leaves_one_cover(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
        artwork_path: Path, make_audio_file,
    ) -> None:
        path = make_audio_file(music_path / "a.mp3", mtime=1_000)
        extractor.register(path, album="B", cover=EmbeddedCover(b"img", "image/png"))
        original_save = SongRepository.save
        calls = 0

        async def locked_once(self: SongRepository, song: Song) -> Song:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise OperationalError("UPDATE songs", {}, Exception("database is locked"))
            return await original_save(self, song)

        with (
            patch.object(SongRepository, "save", locked_once),
            patch("tracksmith.infrastructure.persistence.retry.asyncio.sleep", new=AsyncMock()),
        ):
            result = await sync_file(make_synchronizer, path)

        assert result is SyncResult.SUCCESS
        assert calls == 2
        _, album, _ = await load(db, path)
        assert album is not None
        assert [p.name for p in artwork_path.iterdir()] == [album.cover]


@pytest.mark.skipif(sys.platform != "linux", reason="needs a filesystem that accepts raw bytes")
class TestNonUtf8Filenames:
    """Names that are not valid UTF-8 are synced, not fatal."""

    async def test_latin1_filename(
        self, db: Database, extractor: StubExtractor, make_synchronizer, music_path: Path,
    ) -> None:
        raw = os.path.join(os.fsencode(str(music_path)), b"caf\xe9.mp3")
        with open(raw, "wb") as f:
            f.write(b"\x00" * 16)
        os.utime(raw, (1_000, 1_000))
        [name] = os.listdir(str(music_path))
        path = os.path.join(str(music_path), name)
        extractor.register(Path(path), artist="A", album="B", title="Cafe")

        synchronizer = await make_synchronizer().set_target(path)
        assert synchronizer.identity == TrackIdentity(hashlib.md5(raw).hexdigest())
        assert synchronizer.is_file_new()

        assert await synchronizer.sync() is SyncResult.SUCCESS

        song, album, artist = await load(db, Path(path))
        assert song is not None and album is not None and artist is not None
        assert song.path == str(music_path / "caf\ufffd.mp3")
        assert song.title == "Cafe"
        assert await sync_file(make_synchronizer, Path(path)) is SyncResult.UNMODIFIED
