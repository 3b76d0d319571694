"""
HTTP Layer.

This package contains the aiohttp application that exposes the download
endpoints and wires client disconnects into batch cancellation.
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
