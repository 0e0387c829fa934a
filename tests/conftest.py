"""Shared fixtures.

Hey future me - every test that touches the database gets its OWN file-backed SQLite database
under tmp_path. In-memory SQLite gives each aiosqlite connection a separate empty database,
which breaks as soon as two sessions are open at once (set_target + sync).
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from PIL import Image as PILImage

from tracksmith.application.cache import InMemoryCache
from tracksmith.config import Settings
from tracksmith.infrastructure.persistence import Database, DatabaseLockMetrics


@pytest.fixture
def music_path(tmp_path: Path) -> Path:
    path = tmp_path / "music"
    path.mkdir()
    return path


@pytest.fixture
def artwork_path(tmp_path: Path) -> Path:
    return tmp_path / "artwork"


@pytest.fixture
def settings(tmp_path: Path, music_path: Path, artwork_path: Path) -> Settings:
    """Create test settings pointing at tmp_path."""
    return Settings(
        app_env="test",
        database={"url": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"},
        storage={"music_path": music_path, "artwork_path": artwork_path},
        sync={"max_concurrency": 2},
    )


@pytest.fixture
async def db(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with the schema created."""
    database = Database(settings)
    await database.create_tables()
    yield database
    await database.close()


@pytest.fixture
def cover_cache() -> InMemoryCache[str, str | None]:
    return InMemoryCache()


@pytest.fixture(autouse=True)
def reset_lock_metrics() -> None:
    """The lock metrics are a process-wide singleton, start every test from zero."""
    DatabaseLockMetrics.get_instance().reset()


@pytest.fixture
def make_image():
    """Write a tiny real PNG/JPEG and return its path."""

    def _make(path: Path, fmt: str = "PNG") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        PILImage.new("RGB", (4, 4), color=(200, 30, 30)).save(path, fmt)
        return path

    return _make


@pytest.fixture
def make_audio_file():
    """Create a placeholder media file (content is irrelevant, extraction is stubbed)."""

    def _make(path: Path, mtime: int | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x00" * 16)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _make
