"""Application services - tag extraction, change detection, cover art and reconciliation."""

from tracksmith.application.services.change_detector import ChangeDetector
from tracksmith.application.services.cover_resolver import CoverResolver, cover_cache_key

# Hey future me - FileSynchronizer is the per-file reconciler, LibrarySyncService is the batch
# driver that runs many of them. Callers that sync one file use FileSynchronizer directly.
from tracksmith.application.services.file_synchronizer import FileSynchronizer
from tracksmith.application.services.library_sync_service import (
    LibrarySyncReport,
    LibrarySyncService,
)
from tracksmith.application.services.metadata_extractor import (
    NO_PLAYTIME_ERROR,
    UNSUPPORTED_FORMAT_ERROR,
    MetadataExtractor,
)

__all__ = [
    "ChangeDetector",
    "CoverResolver",
    "cover_cache_key",
    "FileSynchronizer",
    "LibrarySyncReport",
    "LibrarySyncService",
    "MetadataExtractor",
    "NO_PLAYTIME_ERROR",
    "UNSUPPORTED_FORMAT_ERROR",
]
