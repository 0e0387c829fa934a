"""Lyrics normalization applied whenever lyrics are persisted."""

import re

_LINE_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_MARKUP = re.compile(r"<[^>]*>")
# LRC timestamps like [02:15.30], one or more per line
_LRC_TIMESTAMP = re.compile(r"\[\d{2}:\d{2}.\d{2}]\s*", re.MULTILINE)


def normalize_lyrics(value: str | None) -> str:
    """Turn tag lyrics into plain text.

    HTML line breaks become newlines, remaining markup is stripped and
    synchronized-lyrics timestamps are removed from every line.

    Example:
        >>> normalize_lyrics("[02:15.30]Hello<br>World")
        'Hello\\nWorld'
    """
    if not value:
        return ""

    text = _LINE_BREAK.sub("\n", value)
    text = _MARKUP.sub("", text)
    return _LRC_TIMESTAMP.sub("", text)
