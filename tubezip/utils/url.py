"""
Utilities for recognizing YouTube URLs.
"""

from typing import Optional, Tuple
from urllib.parse import parse_qs, urlparse


def parse_youtube_url(url: str) -> Tuple[str, Optional[str]]:
    """
    Parses a YouTube URL to extract the content type and ID.

    Returns ("playlist", id), ("video", id) or ("unknown", None). A `list`
    parameter wins over `v`, so a video opened inside a playlist resolves to
    the playlist.
    """
    try:
        parsed = urlparse(url)
        host = parsed.hostname or ""
    except (TypeError, ValueError, AttributeError):
        return "unknown", None

    if "youtube.com" not in host and "youtu.be" not in host:
        return "unknown", None

    query = parse_qs(parsed.query)
    if playlist_id := query.get("list", [None])[0]:
        return "playlist", playlist_id
    if video_id := query.get("v", [None])[0]:
        return "video", video_id
    if "youtu.be" in host and (path_id := parsed.path.lstrip("/")):
        return "video", path_id
    return "unknown", None
