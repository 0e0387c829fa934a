"""Classifies a file on disk against its Song record."""

import logging
import os
import time

from tracksmith.domain.entities import FileState, Song

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Decides whether a file is new, changed or unchanged."""

    # Hey future me - getmtime() blows up on some platforms for file names with characters the
    # filesystem encoding can't represent (OSError / ValueError). That must NOT abort a scan:
    # we fall back to "now", which makes the file look changed and simply gets it re-read.
    def read_mtime(self, path: str) -> int:
        """Modification time in whole seconds, wall clock on failure."""
        try:
            return int(os.path.getmtime(path))
        except (OSError, ValueError) as e:
            fallback = int(time.time())
            logger.warning(
                "Could not read modification time of %s (%s), using current time %d",
                path,
                e,
                fallback,
            )
            return fallback

    def classify(self, song: Song | None, mtime: int) -> FileState:
        """Compare the stored song against the current modification time."""
        if song is None:
            return FileState.NEW
        if song.mtime != mtime:
            return FileState.CHANGED
        return FileState.UNCHANGED
