"""Domain value objects."""

from tracksmith.domain.value_objects.artist_names import (
    UNKNOWN_ALBUM_NAME,
    UNKNOWN_ARTIST_NAME,
    VARIOUS_ARTISTS_NAME,
    is_unknown_artist,
    is_various_artists,
    normalize_album_name,
    normalize_artist_name,
)
from tracksmith.domain.value_objects.lyrics import normalize_lyrics
from tracksmith.domain.value_objects.storage_metadata import (
    DropboxMetadata,
    LegacyS3Metadata,
    LocalMetadata,
    S3CompatibleMetadata,
    StorageMetadata,
    parse_s3_params,
    resolve_storage_metadata,
    s3_path_from_bucket_and_key,
)
from tracksmith.domain.value_objects.storage_types import SongStorageType
from tracksmith.domain.value_objects.tags import EmbeddedCover, RawTagSet
from tracksmith.domain.value_objects.track_identity import TrackIdentity, printable_path

__all__ = [
    "TrackIdentity",
    "printable_path",
    "RawTagSet",
    "EmbeddedCover",
    "SongStorageType",
    "StorageMetadata",
    "LocalMetadata",
    "S3CompatibleMetadata",
    "LegacyS3Metadata",
    "DropboxMetadata",
    "resolve_storage_metadata",
    "parse_s3_params",
    "s3_path_from_bucket_and_key",
    "normalize_lyrics",
    "UNKNOWN_ARTIST_NAME",
    "VARIOUS_ARTISTS_NAME",
    "UNKNOWN_ALBUM_NAME",
    "is_unknown_artist",
    "is_various_artists",
    "normalize_artist_name",
    "normalize_album_name",
]
