"""
Core download engine.

This package contains the request-level flows. The `BatchOrchestrator` runs a
list of items through yt-dlp and streams them into a ZIP archive, and
`SingleDownload` handles the one-file case.
"""

from .archive import ArchiveClosedError, StreamingZipWriter
from .orchestrator import BatchOrchestrator, NameAllocator
from .single import SingleDownload

__all__ = [
    "ArchiveClosedError",
    "BatchOrchestrator",
    "NameAllocator",
    "SingleDownload",
    "StreamingZipWriter",
]
