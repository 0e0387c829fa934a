"""Tag extraction from audio files via mutagen.

Hey future me - this turns whatever mutagen hands us (ID3 frames, MP4 atoms, Vorbis comments,
APE items) into ONE typed RawTagSet. We build two views of the tags:

- native:   the modern container's own keys, exactly as stored ("TPE1", "©ART", "artist")
- comments: a flattened, lower-case view that also includes user-defined frames
            (ID3 TXXX descriptions, MP4 freeform atoms) and a few well-known aliases
            ("track_number", "part_of_a_set", "unsychronised_lyric", ...)

For each property the native value wins; the comments view is the fallback for taggers that
write e.g. TXXX:ARTIST instead of TPE1. Track/disc numbers are read from the comments view only,
because that's where all the alternate spellings (track, tracknumber, track_number) end up.

Extraction is blocking file IO + parsing. FileSynchronizer runs it in a thread pool.
"""

import html
import logging
from pathlib import Path
from typing import Any

from mutagen import File as MutagenFile  # type: ignore[attr-defined]
from mutagen import MutagenError
from mutagen.id3 import ID3, PictureType
from mutagen.mp4 import MP4Cover, MP4Tags

from tracksmith.domain.exceptions import BadFileError
from tracksmith.domain.value_objects import EmbeddedCover, RawTagSet, printable_path

logger = logging.getLogger(__name__)

NO_PLAYTIME_ERROR = "No playtime found"
UNSUPPORTED_FORMAT_ERROR = "Unsupported or unrecognized file format"

# (property, native keys in priority order, comments-view key)
PROPERTY_MAP: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("artist", ("TPE1", "©ART", "artist"), "artist"),
    ("albumartist", ("TPE2", "aART", "albumartist"), "albumartist"),
    ("album", ("TALB", "©alb", "album"), "album"),
    ("title", ("TIT2", "©nam", "title"), "title"),
    ("lyrics", ("USLT", "©lyr", "lyrics"), "unsychronised_lyric"),
    ("compilation", ("TCMP", "cpil", "compilation"), "part_of_a_compilation"),
)

# Order matters: first non-zero wins
TRACK_NUMBER_KEYS = ("track", "tracknumber", "track_number")
DISC_NUMBER_KEY = "part_of_a_set"

ID3_COMMENT_NAMES = {
    "TPE1": "artist",
    "TPE2": "albumartist",
    "TALB": "album",
    "TIT2": "title",
    "TRCK": "track_number",
    "TPOS": "part_of_a_set",
    "USLT": "unsychronised_lyric",
    "TCMP": "part_of_a_compilation",
}

MP4_COMMENT_NAMES = {
    "©ART": "artist",
    "aART": "albumartist",
    "©alb": "album",
    "©nam": "title",
    "trkn": "track_number",
    "disk": "part_of_a_set",
    "©lyr": "unsychronised_lyric",
    "cpil": "part_of_a_compilation",
}

# Vorbis comments / APE items are already lower-case names; these are the spellings that mean
# one of our well-known comment keys.
VORBIS_COMMENT_ALIASES = {
    "album artist": "albumartist",
    "album_artist": "albumartist",
    "discnumber": "part_of_a_set",
    "disc": "part_of_a_set",
    "lyrics": "unsychronised_lyric",
    "unsyncedlyrics": "unsychronised_lyric",
    "compilation": "part_of_a_compilation",
}


def _first(value: Any) -> Any:
    """Unwrap single-element containers the way tag libraries hand them out."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _parse_int(value: Any) -> int:
    """Parse "5", "5/12", (5, 12) or 5 into 5. Anything else is 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, tuple):
        value = value[0] if value else 0
    if isinstance(value, int):
        return value
    text = str(value).split("/", 1)[0].strip()
    try:
        return int(text)
    except ValueError:
        return 0


def _is_truthy(value: Any) -> bool:
    """Interpret a compilation flag ("1", "true", True, 1...)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return False


def _clean(value: Any) -> Any:
    """HTML-decode and trim string values, leave everything else alone."""
    if isinstance(value, str):
        value = html.unescape(value).strip()
        return value or None
    return value


class MetadataExtractor:
    """Reads one audio file into a RawTagSet."""

    def extract(self, path: str, mtime: int) -> RawTagSet:
        """Extract tags and duration from an audio file.

        Args:
            path: Absolute path of the file
            mtime: Modification time to stamp on the result

        Returns:
            Typed tag set

        Raises:
            BadFileError: If mutagen can't read the file or it has no playtime
        """
        try:
            audio = MutagenFile(path)
        except MutagenError as e:
            raise BadFileError(path, str(e) or UNSUPPORTED_FORMAT_ERROR) from e
        except OSError as e:
            raise BadFileError(path, str(e)) from e

        if audio is None:
            raise BadFileError(path, UNSUPPORTED_FORMAT_ERROR)

        length = getattr(getattr(audio, "info", None), "length", None)
        if length is None:
            raise BadFileError(path, NO_PLAYTIME_ERROR)

        native, comments = self._build_views(audio.tags)
        props = {
            name: self._lookup(native, comments, native_keys, comment_key)
            for name, native_keys, comment_key in PROPERTY_MAP
        }

        artist = props["artist"]
        albumartist = props["albumartist"]

        # Hey future me - iTunes writes an explicit compilation flag, everyone else signals a
        # compilation by setting an album artist that differs from the track artist.
        compilation = _is_truthy(props["compilation"]) or bool(
            albumartist and albumartist != artist
        )

        track = 0
        for key in TRACK_NUMBER_KEYS:
            track = _parse_int(comments.get(key))
            if track:
                break

        disc = _parse_int(comments.get(DISC_NUMBER_KEY)) or 1

        lyrics = props["lyrics"]
        tag_set = RawTagSet(
            path=path,
            title=props["title"] or Path(printable_path(path)).stem,
            length=float(length),
            mtime=mtime,
            artist=artist,
            albumartist=albumartist,
            album=props["album"],
            track=track,
            disc=disc,
            lyrics=lyrics if isinstance(lyrics, str) else "",
            compilation=compilation,
            cover=self._extract_cover(audio),
        )
        logger.debug(
            "Extracted tags from %s: artist=%r album=%r title=%r track=%d",
            path,
            tag_set.artist,
            tag_set.album,
            tag_set.title,
            tag_set.track,
        )
        return tag_set

    @staticmethod
    def _lookup(
        native: dict[str, Any],
        comments: dict[str, Any],
        native_keys: tuple[str, ...],
        comment_key: str,
    ) -> Any:
        for key in native_keys:
            value = _clean(native.get(key))
            if value:
                return value
        return _clean(comments.get(comment_key))

    def _build_views(self, tags: Any) -> tuple[dict[str, Any], dict[str, Any]]:
        """Split tags into the native and comments views."""
        native: dict[str, Any] = {}
        comments: dict[str, Any] = {}

        if tags is None:
            return native, comments

        if isinstance(tags, ID3):
            self._read_id3(tags, native, comments)
        elif isinstance(tags, MP4Tags):
            self._read_mp4(tags, native, comments)
        else:
            self._read_generic(tags, native, comments)

        return native, comments

    @staticmethod
    def _read_id3(tags: ID3, native: dict[str, Any], comments: dict[str, Any]) -> None:
        for frame in tags.values():
            frame_id = frame.FrameID
            if frame_id == "APIC":
                continue

            text = getattr(frame, "text", None)
            value = _first(text)
            if value is None or value == "":
                continue
            if not isinstance(value, str):
                value = str(value)

            # TXXX:TRACK, TXXX:ALBUMARTIST, ... only live in the comments view
            if frame_id == "TXXX":
                name = frame.desc.strip().lower()
                if name:
                    comments.setdefault(name, value)
                continue

            native.setdefault(frame_id, value)
            alias = ID3_COMMENT_NAMES.get(frame_id)
            if alias:
                comments.setdefault(alias, value)

    @staticmethod
    def _read_mp4(tags: MP4Tags, native: dict[str, Any], comments: dict[str, Any]) -> None:
        for key, raw in tags.items():
            if key == "covr":
                continue

            value = _first(raw)
            if value is None:
                continue
            if isinstance(value, bytes):
                # Freeform atoms (----:com.apple.iTunes:NAME) are raw bytes
                value = value.decode("utf-8", errors="replace")

            native.setdefault(key, value)
            if key.startswith("----:"):
                comments.setdefault(key.rsplit(":", 1)[-1].lower(), value)
                continue
            alias = MP4_COMMENT_NAMES.get(key)
            if alias:
                comments.setdefault(alias, value)

    @staticmethod
    def _read_generic(tags: Any, native: dict[str, Any], comments: dict[str, Any]) -> None:
        # Vorbis comments (FLAC/OGG/Opus) and APEv2: case-insensitive names, list or APEValue
        for key in tags.keys():
            value = _first(tags[key])
            if value is None:
                continue
            if not isinstance(value, str | int | bool | tuple):
                value = str(value)

            name = key.lower()
            native.setdefault(name, value)
            comments.setdefault(name, value)
            alias = VORBIS_COMMENT_ALIASES.get(name)
            if alias:
                comments.setdefault(alias, value)

    @staticmethod
    def _extract_cover(audio: Any) -> EmbeddedCover | None:
        """Find embedded cover art, front cover preferred."""
        tags = audio.tags

        if isinstance(tags, ID3):
            pictures = tags.getall("APIC")
            if pictures:
                picture = next(
                    (p for p in pictures if p.type == PictureType.COVER_FRONT),
                    pictures[0],
                )
                return EmbeddedCover(data=picture.data, mime_type=picture.mime or "")

        if isinstance(tags, MP4Tags):
            covers = tags.get("covr") or []
            if covers:
                cover = covers[0]
                mime = (
                    "image/png"
                    if getattr(cover, "imageformat", None) == MP4Cover.FORMAT_PNG
                    else "image/jpeg"
                )
                return EmbeddedCover(data=bytes(cover), mime_type=mime)

        # FLAC keeps pictures outside the Vorbis comment block
        pictures = getattr(audio, "pictures", None)
        if pictures:
            picture = next(
                (p for p in pictures if p.type == PictureType.COVER_FRONT),
                pictures[0],
            )
            return EmbeddedCover(data=picture.data, mime_type=picture.mime or "")

        return None
