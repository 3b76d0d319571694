"""
Media Retrieval Layer.

This package wraps the external yt-dlp tool: spawning it, locating the files
it produces, and stopping it when a download is abandoned.
"""

from .runner import RunResult, YtDlpRunner
from .terminator import terminate

__all__ = ["RunResult", "YtDlpRunner", "terminate"]
