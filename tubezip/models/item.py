"""
Pydantic models for downloadable items and the enums that describe a download.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


class Mode(str, Enum):
    """Selects the yt-dlp argument profile for a download."""

    AUDIO = "audio"
    VIDEO = "video"


class JobStatus(str, Enum):
    """Lifecycle states of a batch job as reported to polling clients."""

    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR, JobStatus.CANCELLED)


class Item(BaseModel):
    """One downloadable unit, as produced by the metadata resolver."""

    id: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    thumbnail: Optional[str] = None

    class Config:
        """Pydantic model configuration."""

        str_strip_whitespace = True

    @model_validator(mode="after")
    def validate_has_source(self) -> "Item":
        """An item must carry either a video identifier or a source URL."""
        if not self.id and not self.url:
            raise ValueError("Each item needs an 'id' or a 'url'.")
        return self

    @property
    def fetch_url(self) -> str:
        """The URL handed to yt-dlp, derived from the id when no URL was given."""
        return self.url or WATCH_URL.format(video_id=self.id)

    @property
    def label(self) -> str:
        """A short identifier for log lines."""
        return self.id or self.url or "?"


class ResolvedMedia(BaseModel):
    """The result of resolving a source URL: a single video or a whole playlist."""

    kind: str
    items: list[Item]
