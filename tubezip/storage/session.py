"""
Temporary directories that hold one request's downloads.
"""

import logging
import os
import shutil
import tempfile

from tubezip.exceptions import SetupError

log = logging.getLogger(__name__)

SESSION_PREFIX = "yt-"


class SessionDirectory:
    """
    A uniquely named directory owned by exactly one request.

    `remove` may be called any number of times, from any exit path, including
    while another coroutine is still writing into the directory.
    """

    def __init__(self, root: str | None = None):
        self.root = root or tempfile.gettempdir()
        self.path: str | None = None

    def create(self) -> str:
        """Creates the directory. Raises SetupError if that fails."""
        try:
            os.makedirs(self.root, exist_ok=True)
            self.path = tempfile.mkdtemp(prefix=SESSION_PREFIX, dir=self.root)
        except OSError as e:
            raise SetupError(f"Could not create session directory: {e}") from e
        log.debug(f"Created session directory {self.path}")
        return self.path

    @property
    def exists(self) -> bool:
        return self.path is not None and os.path.isdir(self.path)

    def remove(self) -> None:
        if self.path is None:
            return
        shutil.rmtree(self.path, ignore_errors=True)
        log.debug(f"Removed session directory {self.path}")
