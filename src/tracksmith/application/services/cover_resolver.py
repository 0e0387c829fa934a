"""Album cover resolution: embedded art first, then cover/folder images next to the file."""

import asyncio
import hashlib
import logging
import os
import re
from pathlib import Path

from tracksmith.application.cache import BaseCache
from tracksmith.domain.entities import Album
from tracksmith.domain.ports import ICoverStore, IDirectoryLister
from tracksmith.domain.value_objects import EmbeddedCover

logger = logging.getLogger(__name__)

COVER_FILENAME_PATTERN = re.compile(r"^(cover|folder)\.(jpe?g|png)$", re.IGNORECASE)
COVER_CACHE_KEY_SUFFIX = "_cover"
DEFAULT_COVER_CACHE_TTL = 86400  # 24 hours


def cover_cache_key(directory: str) -> str:
    """Cache key for a directory's sibling-cover lookup."""
    return hashlib.md5(os.fsencode(f"{directory}{COVER_CACHE_KEY_SUFFIX}")).hexdigest()


class CoverResolver:
    """Makes sure an album has cover art after a scan touched it.

    Hey future me - this is idempotent on purpose: an album that already has a cover is NEVER
    touched again, no matter what the next file says. Users replace covers by hand and we must
    not undo that on every rescan.
    """

    def __init__(
        self,
        cover_store: ICoverStore,
        directory_lister: IDirectoryLister,
        cache: BaseCache[str, str | None],
        cache_ttl_seconds: int = DEFAULT_COVER_CACHE_TTL,
    ) -> None:
        self._cover_store = cover_store
        self._directory_lister = directory_lister
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds

    async def ensure_cover(
        self,
        album: Album,
        embedded_cover: EmbeddedCover | None,
        media_path: str,
    ) -> bool:
        """Attach a cover to the album if it has none.

        Args:
            album: Album to update in place (caller persists it)
            embedded_cover: Cover bytes from the file's tags, if any
            media_path: Path of the media file, used to find sibling covers

        Returns:
            True if a cover was stored and set on the album

        Raises:
            CoverStoreError: If writing the cover file fails
        """
        if album.has_cover:
            return False

        if embedded_cover is not None and embedded_cover.data:
            filename = await asyncio.to_thread(
                self._cover_store.store_bytes,
                embedded_cover.data,
                embedded_cover.extension,
            )
            source = "embedded"
        else:
            sibling = await self.find_sibling_cover(media_path)
            if sibling is None:
                return False
            filename = await asyncio.to_thread(self._cover_store.store_file, Path(sibling))
            source = sibling

        album.set_cover(filename)
        logger.info("Set cover for album '%s' from %s", album.name, source)
        return True

    async def find_sibling_cover(self, media_path: str) -> str | None:
        """Find cover.jpg/folder.png (etc.) next to a media file.

        Results, including "nothing found", are cached per directory so a bulk scan
        lists each album folder once instead of once per track.
        """
        directory = os.path.dirname(os.path.abspath(media_path))
        key = cover_cache_key(directory)
        sibling = await self._cache.remember(
            key,
            self._cache_ttl_seconds,
            lambda: asyncio.to_thread(self._scan_directory, directory),
        )
        if sibling is not None and not os.path.isfile(sibling):
            # The cover was removed or renamed since the scan. Drop the stale entry and look again.
            logger.debug("Cached cover %s is gone, rescanning %s", sibling, directory)
            await self._cache.delete(key)
            sibling = await self._cache.remember(
                key,
                self._cache_ttl_seconds,
                lambda: asyncio.to_thread(self._scan_directory, directory),
            )
        return sibling

    async def discard(self, filename: str) -> None:
        """Remove a cover stored by ensure_cover() whose transaction did not commit."""
        await asyncio.to_thread(self._cover_store.delete, filename)

    # Listen up, only the FIRST matching name is considered (listing is sorted by name). If that
    # file turns out not to be an image we report "no cover" rather than trying the next one.
    def _scan_directory(self, directory: str) -> str | None:
        for candidate in self._directory_lister.list_files(Path(directory)):
            if not COVER_FILENAME_PATTERN.match(candidate.name):
                continue
            if self._cover_store.is_valid_image(candidate):
                return str(candidate)
            logger.debug("Ignoring invalid cover image %s", candidate)
            return None
        return None
