"""Filesystem listing for cover lookup and library walks."""

import logging
import os
from collections import Counter
from collections.abc import Iterable
from pathlib import Path

from tracksmith.domain.ports import IDirectoryLister

logger = logging.getLogger(__name__)


class LocalDirectoryLister(IDirectoryLister):
    """os.scandir / os.walk based lister.

    Both methods follow symlinks and skip what they can't read instead of
    failing: a single unreadable folder must not abort a library scan.
    """

    # Hey future me - sorted by name so "first match" is deterministic across runs and platforms.
    # Raw scandir order is whatever the filesystem hands back (ext4 hash order, etc).
    def list_files(self, directory: Path) -> list[Path]:
        """List regular files directly inside a directory."""
        files: list[Path] = []
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    try:
                        if entry.is_file(follow_symlinks=True):
                            files.append(Path(entry.path))
                    except OSError as e:
                        logger.debug("Skipping unreadable entry %s: %s", entry.path, e)
        except OSError as e:
            logger.debug("Cannot list directory %s: %s", directory, e)
            return []

        return sorted(files, key=lambda p: p.name)

    def walk(self, root: Path, extensions: Iterable[str]) -> list[Path]:
        """Recursively find files whose suffix is in extensions."""
        wanted = {ext.lower() for ext in extensions}
        found: list[Path] = []
        skipped_dirs: list[str] = []
        all_extensions: Counter[str] = Counter()

        def on_error(error: OSError) -> None:
            skipped_dirs.append(str(error.filename))
            logger.warning("Skipping unreadable directory %s: %s", error.filename, error)

        for current, dirs, filenames in os.walk(root, onerror=on_error, followlinks=True):
            dirs.sort()
            for filename in sorted(filenames):
                ext = os.path.splitext(filename)[1].lower()
                all_extensions[ext] += 1
                if ext in wanted:
                    found.append(Path(current) / filename)

        logger.debug(
            "Walked %s: %d matching files, %d skipped dirs, extensions seen: %s",
            root,
            len(found),
            len(skipped_dirs),
            dict(all_extensions.most_common(10)),
        )
        return found
