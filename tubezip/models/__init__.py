"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as items, configuration and statistics.
"""

from .config import ServerConfig
from .item import Item, JobStatus, Mode, ResolvedMedia
from .stats import BatchStats

__all__ = ["BatchStats", "Item", "JobStatus", "Mode", "ResolvedMedia", "ServerConfig"]
