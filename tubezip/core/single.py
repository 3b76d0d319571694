"""
Downloads one item and streams the resulting file straight back to the client.
"""

import asyncio
import logging
import os

import aiofiles

from tubezip.exceptions import RetrievalError, SetupError
from tubezip.media.runner import YtDlpRunner, find_downloaded_file, title_from_saved_name
from tubezip.models.config import DEFAULT_CHUNK_SIZE
from tubezip.models.item import Mode
from tubezip.storage.session import SessionDirectory
from tubezip.utils.filename import sanitize, split_extension
from tubezip.utils.structured_logger import BatchLogger, create_structured_logger

from .archive import Send

log = logging.getLogger(__name__)


class SingleDownload:
    """
    One yt-dlp run, one file. The session directory is removed once the file
    has been streamed, or as soon as anything fails.
    """

    def __init__(
        self,
        url: str,
        mode: Mode,
        runner: YtDlpRunner,
        session: SessionDirectory,
        title: str | None = None,
        batch_logger: BatchLogger | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.url = url
        self.mode = Mode(mode)
        self.runner = runner
        self.session = session
        self.title = title
        self.batch_logger = batch_logger or create_structured_logger()[1]
        self.chunk_size = chunk_size

        self.file_path: str | None = None
        self.filename: str | None = None
        self.size = 0

    async def fetch(self) -> str:
        """
        Runs yt-dlp and resolves the client-facing file name.

        Returns:
            The file name to advertise in Content-Disposition.

        Raises:
            SetupError: If the session directory cannot be created.
            RetrievalError: If yt-dlp fails or leaves no file behind.
        """
        self.session.create()
        try:
            result = await self.runner.run(self.url, self.mode, self.session.path)
            file_path = find_downloaded_file(self.session.path, result.pattern)
            if not file_path or not os.path.isfile(file_path):
                raise RetrievalError("File not found after download.")

            _, ext = split_extension(os.path.basename(file_path))
            title = self.title or title_from_saved_name(file_path, result.pattern)
            self.file_path = file_path
            self.filename = f"{sanitize(title)}{ext}"
            self.size = await asyncio.to_thread(os.path.getsize, file_path)
        except BaseException:
            self.session.remove()
            raise
        return self.filename

    async def stream(self, send: Send) -> int:
        """Sends the file in chunks, then removes the session directory."""
        if self.file_path is None:
            raise SetupError("fetch() must complete before stream().")

        sent = 0
        try:
            async with aiofiles.open(self.file_path, "rb") as source:
                while chunk := await source.read(self.chunk_size):
                    await send(chunk)
                    sent += len(chunk)
        finally:
            self.session.remove()

        self.batch_logger.single_completed(self.url, self.filename, sent)
        return sent

    def cleanup(self) -> None:
        self.session.remove()
