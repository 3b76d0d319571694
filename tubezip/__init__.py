"""
tubezip: fetch media with yt-dlp and deliver it as a single file or a streamed ZIP.
"""

__version__ = "1.0.0"
