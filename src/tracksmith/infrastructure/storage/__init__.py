"""Filesystem adapters."""

from tracksmith.infrastructure.storage.cover_store import LocalCoverStore
from tracksmith.infrastructure.storage.directory_lister import LocalDirectoryLister

__all__ = ["LocalCoverStore", "LocalDirectoryLister"]
