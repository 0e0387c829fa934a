"""Value objects produced by tag extraction."""

from dataclasses import asdict, dataclass, fields
from typing import Any

DEFAULT_COVER_EXTENSION = "png"


@dataclass(frozen=True)
class EmbeddedCover:
    """Cover image bytes found inside a media file's tags."""

    data: bytes
    mime_type: str = ""

    # Yo, "image/jpeg" -> "jpeg", "image/png" -> "png". Anything we can't split (empty string,
    # "jpg" without a slash, "image/") falls back to png - same as the old scanner did.
    @property
    def extension(self) -> str:
        """File extension derived from the MIME type."""
        _, sep, subtype = self.mime_type.partition("/")
        subtype = subtype.strip().lower()
        if not sep or not subtype:
            return DEFAULT_COVER_EXTENSION
        return subtype

    def __repr__(self) -> str:
        return f"EmbeddedCover(mime_type={self.mime_type!r}, size={len(self.data)})"


@dataclass(frozen=True)
class RawTagSet:
    """Flat, typed view of one file's metadata.

    Produced fresh on every extraction and thrown away after the merge.
    """

    path: str
    title: str
    length: float
    mtime: int
    artist: str | None = None
    albumartist: str | None = None
    album: str | None = None
    track: int = 0
    disc: int = 1
    lyrics: str = ""
    compilation: bool = False
    cover: EmbeddedCover | None = None

    @classmethod
    def field_names(cls) -> frozenset[str]:
        """All tag names a caller may put in a sync allowlist."""
        return frozenset(f.name for f in fields(cls))

    def as_dict(self) -> dict[str, Any]:
        """Field mapping used for allowlist filtering.

        The cover stays an EmbeddedCover object (asdict would turn it into a dict).
        """
        data = asdict(self)
        data["cover"] = self.cover
        return data
