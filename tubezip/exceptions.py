"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class TubezipError(Exception):
    """Base exception for all application-specific errors."""


class InputError(TubezipError):
    """Raised when a request is missing a URL, a mode, or a valid item list."""


class ResolverError(TubezipError):
    """Raised when a source URL cannot be resolved into media items."""


class RetrievalError(TubezipError):
    """
    Raised when yt-dlp exits non-zero, cannot be spawned, or leaves no output
    file behind.
    """

    def __init__(self, message: str, returncode: int | None = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class SetupError(TubezipError):
    """Raised when a session directory or archive stream cannot be prepared."""


class ConfigurationError(TubezipError):
    """Raised for issues related to configuration loading or validation."""
