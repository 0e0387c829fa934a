"""Album cover storage on the local filesystem."""

import logging
import re
import shutil
import uuid
from pathlib import Path

from PIL import Image as PILImage

from tracksmith.domain.exceptions import CoverStoreError
from tracksmith.domain.ports import ICoverStore

logger = logging.getLogger(__name__)

_SAFE_EXTENSION = re.compile(r"[^a-z0-9]")
_FALLBACK_EXTENSION = "png"


def _safe_extension(extension: str) -> str:
    cleaned = _SAFE_EXTENSION.sub("", extension.lower())
    return cleaned or _FALLBACK_EXTENSION


class LocalCoverStore(ICoverStore):
    """Writes album covers into settings.storage.artwork_path.

    Hey future me - stored names are random (uuid4 hex + extension), NOT derived from the album.
    Two albums called "Greatest Hits" must not overwrite each other's cover, and a re-flagged
    album keeps its id but would otherwise fight over the old filename.
    """

    def __init__(self, artwork_path: Path) -> None:
        self._artwork_path = artwork_path
        self._artwork_path.mkdir(parents=True, exist_ok=True)

    @property
    def artwork_path(self) -> Path:
        return self._artwork_path

    def path_for(self, filename: str) -> Path:
        """Absolute path of a stored cover."""
        return self._artwork_path / filename

    def _new_filename(self, extension: str) -> str:
        return f"{uuid.uuid4().hex}.{_safe_extension(extension)}"

    def store_bytes(self, data: bytes, extension: str) -> str:
        """Write embedded cover bytes, return the stored filename."""
        filename = self._new_filename(extension)
        target = self.path_for(filename)
        try:
            target.write_bytes(data)
        except OSError as e:
            raise CoverStoreError(f"Failed to write cover {target}: {e}") from e

        logger.debug("Stored embedded cover as %s (%d bytes)", filename, len(data))
        return filename

    def store_file(self, source: Path) -> str:
        """Copy a sibling cover file, return the stored filename."""
        filename = self._new_filename(source.suffix.lstrip("."))
        target = self.path_for(filename)
        try:
            shutil.copyfile(source, target)
        except OSError as e:
            raise CoverStoreError(f"Failed to copy cover {source} -> {target}: {e}") from e

        logger.debug("Stored cover %s as %s", source, filename)
        return filename

    def delete(self, filename: str) -> None:
        """Remove a stored cover (no-op if it is already gone)."""
        target = self.path_for(filename)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise CoverStoreError(f"Failed to delete cover {target}: {e}") from e
        logger.debug("Deleted cover %s", filename)

    # Yo, verify() checks the file structure without decoding every pixel - cheap enough to run
    # on every candidate cover.jpg. Pillow signals garbage with OSError (UnidentifiedImageError is
    # a subclass) or SyntaxError for some truncated formats.
    def is_valid_image(self, path: Path) -> bool:
        """Check if a file decodes as an image."""
        try:
            with PILImage.open(path) as img:
                img.verify()
        except (OSError, SyntaxError, ValueError) as e:
            logger.debug("Rejected cover candidate %s: %s", path, e)
            return False
        return True
