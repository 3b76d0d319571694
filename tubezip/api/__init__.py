"""
Metadata API Layer.

This package handles all communication with the YouTube Data API.
"""

from .client import YouTubeClient

__all__ = ["YouTubeClient"]
