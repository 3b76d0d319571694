"""
Storage Layer.

This package holds request-scoped and process-wide state: the session
directories downloads are written to, the in-memory job registry, and the
configuration loader.
"""

from .config_manager import ConfigManager
from .jobs import Job, JobRegistry
from .session import SessionDirectory

__all__ = ["ConfigManager", "Job", "JobRegistry", "SessionDirectory"]
