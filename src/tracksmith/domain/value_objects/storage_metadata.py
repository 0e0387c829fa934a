"""Storage-backend addressing for Song paths.

Hey future me - a Song's `storage` column says which backend holds the file and its `path`
encodes the location in that backend's scheme:

    local       /music/Artist/01 Song.mp3
    s3          s3+://bucket/key/parts.mp3
    s3-legacy   s3+://bucket/key/parts.mp3
    dropbox     dropbox://key/parts.mp3

The resolver never raises. If a path doesn't parse for its declared backend we treat it as
a local path, so a bad row degrades to "file not found" instead of crashing a listing.
"""

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from tracksmith.domain.value_objects.storage_types import SongStorageType

logger = logging.getLogger(__name__)

_S3_COMPATIBLE_PATH = re.compile(r"^s3\+://([^/]+)/(.+)$")
_DROPBOX_PATH = re.compile(r"^dropbox://(.+)$")
_S3_PATH = re.compile(r"^s3://(.+)$")


class StorageMetadata(Protocol):
    """Anything that can tell where a song's bytes live."""

    def get_path(self) -> str: ...


@dataclass(frozen=True)
class LocalMetadata:
    """File on the local filesystem."""

    path: str

    def get_path(self) -> str:
        return self.path


@dataclass(frozen=True)
class S3CompatibleMetadata:
    """Object in an S3-compatible bucket."""

    bucket: str
    key: str

    def get_path(self) -> str:
        return self.key


@dataclass(frozen=True)
class LegacyS3Metadata:
    """Object uploaded through the legacy S3 integration."""

    bucket: str
    key: str

    def get_path(self) -> str:
        return self.key


@dataclass(frozen=True)
class DropboxMetadata:
    """File in a Dropbox app folder."""

    key: str

    def get_path(self) -> str:
        return self.key


def resolve_storage_metadata(storage: str | None, path: str) -> StorageMetadata:
    """Pick the metadata object matching a song's storage backend.

    Args:
        storage: Value of the Song's storage column ("" counts as local)
        path: Value of the Song's path column

    Returns:
        Backend-specific metadata, LocalMetadata if the path doesn't parse
    """
    try:
        storage_type = SongStorageType.from_value(storage)
    except ValueError:
        logger.debug("Unknown storage type %r for %s, treating as local", storage, path)
        return LocalMetadata(path)

    if storage_type in (SongStorageType.S3, SongStorageType.S3_LEGACY):
        match = _S3_COMPATIBLE_PATH.match(path)
        if not match:
            logger.debug("Unparseable %s path %s, treating as local", storage_type, path)
            return LocalMetadata(path)
        if storage_type is SongStorageType.S3:
            return S3CompatibleMetadata(bucket=match.group(1), key=match.group(2))
        return LegacyS3Metadata(bucket=match.group(1), key=match.group(2))

    if storage_type is SongStorageType.DROPBOX:
        match = _DROPBOX_PATH.match(path)
        if not match:
            logger.debug("Unparseable dropbox path %s, treating as local", path)
            return LocalMetadata(path)
        return DropboxMetadata(key=match.group(1))

    return LocalMetadata(path)


def parse_s3_params(path: str) -> dict[str, str] | None:
    """Split an s3://bucket/key path into its bucket and key.

    Returns None for anything that isn't an s3:// path with both parts.
    """
    match = _S3_PATH.match(path)
    if not match:
        return None
    bucket, sep, key = match.group(1).partition("/")
    if not sep or not bucket or not key:
        return None
    return {"bucket": bucket, "key": key}


def s3_path_from_bucket_and_key(bucket: str, key: str) -> str:
    """Inverse of parse_s3_params."""
    return f"s3://{bucket}/{key}"
