"""Application settings loaded from environment variables.

Hey future me - every section is a plain pydantic BaseModel nested under Settings.
Environment variables use the TRACKSMITH_ prefix and "__" to reach into a section:

    TRACKSMITH_LOG_LEVEL=DEBUG
    TRACKSMITH_DATABASE__URL=sqlite+aiosqlite:///./library.db
    TRACKSMITH_STORAGE__MUSIC_PATH=/music
    TRACKSMITH_SYNC__COVER_CACHE_TTL_SECONDS=3600

Tests build Settings directly and pass sections as dicts, e.g.
Settings(app_env="test", database={"url": "sqlite+aiosqlite:///:memory:"}).
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_AUDIO_EXTENSIONS = [
    ".mp3",
    ".m4a",
    ".aac",
    ".ogg",
    ".opus",
    ".flac",
    ".wav",
    ".aiff",
    ".wma",
]


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = Field(
        default="sqlite+aiosqlite:///./tracksmith.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Log all SQL statements")
    pool_pre_ping: bool = Field(default=True)
    # Pool settings only apply to PostgreSQL, SQLite ignores them
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=3600, ge=-1)
    sqlite_busy_timeout: int = Field(
        default=30, ge=0, description="Seconds SQLite waits for a lock"
    )


class StorageSettings(BaseModel):
    """Filesystem locations."""

    music_path: Path = Field(
        default=Path("./music"), description="Root of the music library"
    )
    artwork_path: Path = Field(
        default=Path("./artwork"), description="Where album covers are stored"
    )


class ObservabilitySettings(BaseModel):
    """Logging output settings."""

    log_json_format: bool = Field(
        default=False, description="Emit JSON logs (recommended for production)"
    )


class SyncSettings(BaseModel):
    """Reconciliation settings."""

    cover_cache_ttl_seconds: int = Field(
        default=86400,
        ge=0,
        description="How long a directory cover lookup stays cached (24h)",
    )
    max_concurrency: int = Field(
        default=4, ge=1, description="Files reconciled in parallel by the batch driver"
    )
    supported_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_AUDIO_EXTENSIONS)
    )

    @field_validator("supported_extensions")
    @classmethod
    def normalize_extensions(cls, value: list[str]) -> list[str]:
        """Lowercase extensions and make sure each has a leading dot."""
        normalized = []
        for ext in value:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        return normalized


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="TRACKSMITH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="tracksmith")
    app_env: Literal["development", "production", "test"] = Field(
        default="development"
    )
    log_level: str = Field(default="INFO")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    observability: ObservabilitySettings = Field(
        default_factory=ObservabilitySettings
    )
    sync: SyncSettings = Field(default_factory=SyncSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Accept any casing but store the canonical upper-case level name."""
        level = value.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{value}', expected one of {', '.join(VALID_LOG_LEVELS)}"
            )
        return level

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env == "production"

    def ensure_directories(self) -> None:
        """Create storage directories if missing."""
        self.storage.music_path.mkdir(parents=True, exist_ok=True)
        self.storage.artwork_path.mkdir(parents=True, exist_ok=True)


# Hey future me - cached so every caller shares ONE Settings instance. Tests that need
# different values should build Settings(...) directly instead of touching this.
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
