"""Artist and album name normalization.

Hey future me - artists are keyed by their NAME, so "Various Artists", "VA" and "V.A." must all
end up as the same row or compilations get split across three fake artists. Same story for
blank names: every untagged file lands on the one "Unknown Artist" row.

Matching is exact after normalization (trim + sentinel folding). No fuzzy matching, no
"The " stripping - "The Beatles" and "Beatles" stay two artists, like in the file tags.
"""

UNKNOWN_ARTIST_NAME = "Unknown Artist"
VARIOUS_ARTISTS_NAME = "Various Artists"
UNKNOWN_ALBUM_NAME = "Unknown Album"

# All patterns are lowercase, compared after strip()
VARIOUS_ARTISTS_PATTERNS = frozenset(
    [
        "various artists",
        "various",
        "va",
        "v.a.",
        "v. a.",
        "v/a",
        "verschiedene interpreten",  # German
        "varios artistas",  # Spanish
        "artistes divers",  # French
        "artisti vari",  # Italian
    ]
)

UNKNOWN_ARTIST_PATTERNS = frozenset(["unknown artist", "unknown", "[unknown]"])


def is_various_artists(artist_name: str | None) -> bool:
    """Check if an artist name means "Various Artists".

    Example:
        >>> is_various_artists("V.A.")
        True
        >>> is_various_artists("The Beatles")
        False
    """
    if not artist_name:
        return False
    return artist_name.strip().lower() in VARIOUS_ARTISTS_PATTERNS


def is_unknown_artist(artist_name: str | None) -> bool:
    """Check if an artist name is empty or one of the "unknown" spellings."""
    if not artist_name or not artist_name.strip():
        return True
    return artist_name.strip().lower() in UNKNOWN_ARTIST_PATTERNS


def normalize_artist_name(artist_name: str | None) -> str:
    """Canonical artist name used as the natural key.

    Example:
        >>> normalize_artist_name("  Daft Punk ")
        'Daft Punk'
        >>> normalize_artist_name("va")
        'Various Artists'
        >>> normalize_artist_name(None)
        'Unknown Artist'
    """
    if not artist_name or is_unknown_artist(artist_name):
        return UNKNOWN_ARTIST_NAME
    if is_various_artists(artist_name):
        return VARIOUS_ARTISTS_NAME
    return artist_name.strip()


def normalize_album_name(album_name: str | None) -> str:
    """Canonical album name, "Unknown Album" when blank."""
    if not album_name or not album_name.strip():
        return UNKNOWN_ALBUM_NAME
    return album_name.strip()
