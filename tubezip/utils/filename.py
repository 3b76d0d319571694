"""
Helpers for turning arbitrary titles into safe file names and
Content-Disposition header values.
"""

import re
from urllib.parse import quote

DEFAULT_FILENAME = "download"
MAX_FILENAME_LENGTH = 140

_HOSTILE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f-\x9f]')
_WHITESPACE = re.compile(r"\s+")
_NON_ASCII = re.compile(r"[^\x20-\x7e]")

# encodeURIComponent leaves these alone, RFC 5987 attr-char does not allow them
_RFC5987_ESCAPES = {"'": "%27", "(": "%28", ")": "%29", "*": "%2A"}


def sanitize(name: str | None) -> str:
    """
    Maps a title to a name that is safe on any filesystem and inside a quoted
    header parameter. Never longer than 140 characters, never empty.
    """
    if not name:
        return DEFAULT_FILENAME
    cleaned = _HOSTILE_CHARS.sub("_", name)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    cleaned = cleaned[:MAX_FILENAME_LENGTH].rstrip()
    return cleaned or DEFAULT_FILENAME


def encode_header_value(name: str) -> str:
    """Percent-encodes a value for the `filename*` parameter (RFC 5987)."""
    encoded = quote(name, safe="!'()*", encoding="utf-8", errors="replace")
    return "".join(_RFC5987_ESCAPES.get(char, char) for char in encoded)


def content_disposition(filename: str) -> str:
    """
    Builds an attachment Content-Disposition value carrying both an ASCII-only
    fallback name and the UTF-8 original.
    """
    fallback = _NON_ASCII.sub("_", sanitize(filename))
    return (
        f"attachment; filename=\"{fallback}\"; "
        f"filename*=UTF-8''{encode_header_value(filename)}"
    )


def split_extension(name: str) -> tuple[str, str]:
    """Splits 'Song.mp4' into ('Song', '.mp4'). Names without a dot keep an empty suffix."""
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return name, ""
    return stem, f".{ext}"
