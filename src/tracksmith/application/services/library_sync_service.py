# Hey future me - this is the batch driver around FileSynchronizer. It walks the music directory
# (or takes an explicit list of paths), reconciles every file and sums up the outcomes.
# Key points:
# 1. ONE FileSynchronizer per file - they are stateful (set_target), never share one
# 2. Files run concurrently, bounded by a Semaphore (settings.sync.max_concurrency)
# 3. Tag extraction goes to a shared ThreadPoolExecutor so the event loop stays responsive
# 4. A single file blowing up is recorded in the report and the run goes on
"""Library sync service: reconciles a whole directory tree into the database."""

import asyncio
import logging
import os
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from tracksmith.application.cache import BaseCache, InMemoryCache
from tracksmith.application.services.cover_resolver import CoverResolver
from tracksmith.application.services.file_synchronizer import FileSynchronizer
from tracksmith.application.services.metadata_extractor import MetadataExtractor
from tracksmith.config import Settings
from tracksmith.domain.entities import SyncResult
from tracksmith.domain.exceptions import ValidationException
from tracksmith.infrastructure.observability import set_correlation_id
from tracksmith.infrastructure.persistence import Database, DatabaseLockMetrics
from tracksmith.infrastructure.storage import LocalCoverStore, LocalDirectoryLister

logger = logging.getLogger(__name__)


@dataclass
class LibrarySyncReport:
    """Outcome counts of one batch run."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    total_files: int = 0
    success: int = 0
    unmodified: int = 0
    bad_file: int = 0
    failed: int = 0
    # {"path": ..., "error": ...} for bad files and unexpected failures
    errors: list[dict[str, str]] = field(default_factory=list)

    def record(self, path: str, result: SyncResult, error: str | None = None) -> None:
        """Count one reconciled file."""
        if result is SyncResult.SUCCESS:
            self.success += 1
        elif result is SyncResult.UNMODIFIED:
            self.unmodified += 1
        else:
            self.bad_file += 1
            self.errors.append({"path": path, "error": error or "Unknown error"})

    def record_failure(self, path: str, error: str) -> None:
        """Count a file whose sync raised."""
        self.failed += 1
        self.errors.append({"path": path, "error": error})

    def finish(self) -> None:
        self.completed_at = datetime.now(UTC)

    @property
    def processed(self) -> int:
        return self.success + self.unmodified + self.bad_file + self.failed

    def as_dict(self) -> dict[str, Any]:
        """Plain dict for logging or JSON output."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_files": self.total_files,
            "success": self.success,
            "unmodified": self.unmodified,
            "bad_file": self.bad_file,
            "failed": self.failed,
            "errors": list(self.errors),
        }


class LibrarySyncService:
    """Reconciles many files, concurrently, against one database."""

    def __init__(
        self,
        db: Database,
        settings: Settings,
        cache: BaseCache[str, str | None] | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        """Initialize sync service.

        Args:
            db: Database shared by all per-file synchronizers
            settings: Application settings (music_path, artwork_path, sync section)
            cache: Cover lookup cache (a fresh InMemoryCache if omitted)
            executor: Thread pool for tag extraction (created and owned if omitted)
        """
        self._db = db
        self.settings = settings
        self._cache: BaseCache[str, str | None] = cache or InMemoryCache()
        self._directory_lister = LocalDirectoryLister()
        self._extractor = MetadataExtractor()
        self._cover_resolver = CoverResolver(
            cover_store=LocalCoverStore(settings.storage.artwork_path),
            directory_lister=self._directory_lister,
            cache=self._cache,
            cache_ttl_seconds=settings.sync.cover_cache_ttl_seconds,
        )

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=min(8, max(2, os.cpu_count() or 4))
        )

    def new_synchronizer(self) -> FileSynchronizer:
        """Fresh per-file synchronizer sharing this service's adapters and cache."""
        return FileSynchronizer(
            db=self._db,
            extractor=self._extractor,
            cover_resolver=self._cover_resolver,
            executor=self._executor,
        )

    async def sync_directory(
        self,
        root: str | os.PathLike[str] | None = None,
        tags: Sequence[str] | None = None,
        force: bool = False,
    ) -> LibrarySyncReport:
        """Walk a directory tree and reconcile every supported audio file.

        Args:
            root: Directory to walk (settings.storage.music_path if omitted)
            tags: Allowlist applied to already known songs
            force: Re-sync unchanged files too

        Raises:
            ValidationException: If root is not a directory
        """
        root_path = Path(root) if root is not None else self.settings.storage.music_path
        if not root_path.is_dir():
            raise ValidationException(f"Music path does not exist: {root_path}")

        logger.info("Scanning library at %s", root_path.resolve())
        files = await asyncio.to_thread(
            self._directory_lister.walk,
            root_path,
            self.settings.sync.supported_extensions,
        )
        return await self.sync_paths(files, tags=tags, force=force)

    async def sync_paths(
        self,
        paths: Iterable[str | os.PathLike[str]],
        tags: Sequence[str] | None = None,
        force: bool = False,
    ) -> LibrarySyncReport:
        """Reconcile an explicit list of files."""
        correlation_id = set_correlation_id()
        file_list = [os.fspath(p) for p in paths]
        report = LibrarySyncReport(total_files=len(file_list))
        semaphore = asyncio.Semaphore(self.settings.sync.max_concurrency)

        logger.info(
            "Library sync %s started: %d files, tags=%s, force=%s",
            correlation_id,
            len(file_list),
            list(tags) if tags else [],
            force,
        )

        async def run(path: str) -> None:
            async with semaphore:
                await self._sync_one(path, tags, force, report)

        await asyncio.gather(*(run(path) for path in file_list))
        report.finish()

        logger.info(
            "Library sync complete: %d synced, %d unmodified, %d bad files, %d failed",
            report.success,
            report.unmodified,
            report.bad_file,
            report.failed,
        )
        lock_stats = DatabaseLockMetrics.get_instance().get_stats()
        if lock_stats["lock_retries"] or lock_stats["lock_failures"]:
            logger.warning("Database lock contention during sync: %s", lock_stats)
        return report

    async def _sync_one(
        self,
        path: str,
        tags: Sequence[str] | None,
        force: bool,
        report: LibrarySyncReport,
    ) -> None:
        synchronizer = self.new_synchronizer()
        try:
            await synchronizer.set_target(path)
            result = await synchronizer.sync(tags, force)
        except Exception as e:
            # One broken file must not abort the whole run; it ends up in the report
            logger.warning("Error syncing %s: %s", path, e, exc_info=True)
            report.record_failure(path, str(e))
            return

        report.record(path, result, synchronizer.get_sync_error())

    def close(self) -> None:
        """Shut down the thread pool if this service created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
