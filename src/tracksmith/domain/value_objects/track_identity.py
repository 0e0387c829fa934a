"""Path-derived identity for Song records."""

import hashlib
import os
from dataclasses import dataclass


# Hey future me - the identity is md5(absolute path), NOT a content hash! Re-tagging a file keeps
# its identity, moving/renaming it produces a new one (and a new Song row). We deliberately use
# os.path.abspath and not realpath: a symlinked library path is its own identity.
# The digest is taken over os.fsencode() bytes, i.e. the name exactly as the filesystem stores
# it. Names that are not valid UTF-8 come back from os.walk/listdir with surrogate escapes and
# would blow up a plain .encode("utf-8").
@dataclass(frozen=True)
class TrackIdentity:
    """Stable identifier correlating a filesystem path with a Song row."""

    value: str

    def __post_init__(self) -> None:
        """Validate the digest shape."""
        if len(self.value) != 32 or any(c not in "0123456789abcdef" for c in self.value):
            raise ValueError(f"Invalid track identity: {self.value!r}")

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "TrackIdentity":
        """Compute the identity for a file path."""
        absolute = os.path.abspath(os.fspath(path))
        return cls(hashlib.md5(os.fsencode(absolute)).hexdigest())

    def __str__(self) -> str:
        return self.value


def printable_path(path: str | os.PathLike[str]) -> str:
    """Text form of a path that is safe to store and display.

    Undecodable bytes become U+FFFD. The result is lossy for such names, so never use it to
    open the file or to compute an identity, use the original path for that.
    """
    return os.fsencode(os.fspath(path)).decode("utf-8", errors="replace")
