"""SQLAlchemy ORM models for tracksmith."""

import html
import os
import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import (
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from tracksmith.domain.exceptions import ValidationException
from tracksmith.domain.value_objects import SongStorageType, normalize_lyrics


# Hey future me, utc_now() ensures ALL timestamps are UTC! Never use datetime.now() without
# timezone - naive datetimes break as soon as two machines disagree on local time.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Datetimes come back naive. Use this
# before comparing DB datetimes with datetime.now(UTC), or you get "can't compare offset-naive
# and offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models.

    All models inherit from this to use the same metadata registry.
    """

    pass


# Listen up, artists are keyed by NAME (unique constraint). get_or_create in the repository
# relies on that constraint for INSERT ... ON CONFLICT DO NOTHING - two workers scanning two files
# of the same new artist at once both end up with the same row. Don't drop the constraint!
class ArtistModel(Base):
    """SQLAlchemy model for Artist entity."""

    __tablename__ = "artists"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    albums: Mapped[list["AlbumModel"]] = relationship(
        "AlbumModel", back_populates="artist"
    )
    songs: Mapped[list["SongModel"]] = relationship(
        "SongModel", back_populates="artist"
    )

    __table_args__ = (
        UniqueConstraint("name", name="uq_artists_name"),
        Index("ix_artists_name_lower", func.lower(name)),
    )


# Yo, the album natural key is (artist_id, name, is_compilation). "Greatest Hits" by two
# different artists are two albums; the same name re-tagged as a compilation is another one.
# cover is a filename inside settings.storage.artwork_path, "" = no cover yet.
class AlbumModel(Base):
    """SQLAlchemy model for Album entity."""

    __tablename__ = "albums"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    artist_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("artists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_compilation: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default="0"
    )
    cover: Mapped[str] = mapped_column(
        String(255), nullable=False, default="", server_default=""
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    artist: Mapped["ArtistModel"] = relationship("ArtistModel", back_populates="albums")
    songs: Mapped[list["SongModel"]] = relationship(
        "SongModel", back_populates="album"
    )

    __table_args__ = (
        UniqueConstraint(
            "artist_id", "name", "is_compilation", name="uq_albums_natural_key"
        ),
        Index("ix_albums_name", "name"),
    )


# Hey future me - the Song primary key is the md5 of the absolute file path (TrackIdentity),
# 32 hex chars, NOT a UUID. The @validates hooks below run on EVERY attribute assignment, so
# no code path can persist un-normalized lyrics or an HTML-escaped title.
class SongModel(Base):
    """SQLAlchemy model for Song entity."""

    __tablename__ = "songs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    album_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("albums.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    artist_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("artists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    length: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    track: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    disc: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    lyrics: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mtime: Mapped[int] = mapped_column(Integer, nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    storage: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SongStorageType.LOCAL.value,
        server_default=SongStorageType.LOCAL.value,
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    album: Mapped["AlbumModel"] = relationship("AlbumModel", back_populates="songs")
    artist: Mapped["ArtistModel"] = relationship("ArtistModel", back_populates="songs")

    __table_args__ = (Index("ix_songs_title", "title"),)

    @validates("lyrics")
    def _normalize_lyrics(self, _key: str, value: str | None) -> str:
        return normalize_lyrics(value)

    # Yo, taggers love writing "Rock &amp; Roll". Decode on the way in; a title that ends up
    # blank falls back to the filename stem so the UI never shows an empty row.
    @validates("title")
    def _normalize_title(self, _key: str, value: str | None) -> str:
        title = html.unescape(value or "").strip()
        if not title and self.path:
            title = os.path.splitext(os.path.basename(self.path))[0]
        return title

    @validates("storage")
    def _validate_storage(self, _key: str, value: str | None) -> str:
        try:
            return SongStorageType.from_value(value).value
        except ValueError as e:
            raise ValidationException(f"Invalid song storage type: {value!r}") from e
