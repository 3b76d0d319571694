"""
A ZIP writer that streams bytes to an async sink while entries are appended.

`zipfile` is pointed at an unseekable in-memory sink, which makes it emit a
data descriptor after each member instead of seeking back to patch the local
header. Whatever it writes is drained to the sink after every chunk, so at
most one chunk of a member is ever held in memory.
"""

import asyncio
import logging
import os
import time
import zipfile
from collections.abc import Awaitable, Callable

import aiofiles

from tubezip.exceptions import TubezipError
from tubezip.models.config import DEFAULT_CHUNK_SIZE

log = logging.getLogger(__name__)

Send = Callable[[bytes], Awaitable[None]]


class ArchiveClosedError(TubezipError):
    """Raised when writing to an archive that was aborted or whose sink went away."""


class _BufferSink:
    """The file object zipfile writes into. Has no tell() or seek() on purpose."""

    def __init__(self):
        self._buffer = bytearray()
        self.discarding = False

    def write(self, data: bytes) -> int:
        if not self.discarding:
            self._buffer += data
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def drain(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data

    def discard(self) -> None:
        self.discarding = True
        self._buffer.clear()


class StreamingZipWriter:
    """Appends files and text members to a ZIP stream delivered through `send`."""

    def __init__(
        self,
        send: Send,
        compression_level: int = 9,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._send = send
        self._sink = _BufferSink()
        self._zip = zipfile.ZipFile(
            self._sink,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        )
        self.compression_level = compression_level
        self.chunk_size = chunk_size
        self.names: list[str] = []
        self.aborted = False
        self.finalized = False

    @property
    def closed(self) -> bool:
        return self.aborted or self.finalized

    def _check_open(self) -> None:
        if self.aborted:
            raise ArchiveClosedError("Archive was aborted.")
        if self.finalized:
            raise ArchiveClosedError("Archive was already finalized.")

    def _new_entry(self, name: str, size: int) -> zipfile.ZipInfo:
        if name in self.names:
            raise ValueError(f"Duplicate archive entry name: {name}")
        info = zipfile.ZipInfo(name, date_time=time.localtime()[:6])
        info.compress_type = zipfile.ZIP_DEFLATED
        try:
            info.compress_level = self.compression_level
        except AttributeError:
            # Named _compresslevel before Python 3.13
            info._compresslevel = self.compression_level
        info.external_attr = 0o644 << 16
        # Lets zipfile decide up front whether the member needs ZIP64 headers
        info.file_size = size
        return info

    async def _flush(self) -> None:
        data = self._sink.drain()
        if not data or self.aborted:
            return
        try:
            await self._send(data)
        except ConnectionError as e:
            self.abort()
            raise ArchiveClosedError(f"Archive stream closed by peer: {e}") from e

    async def add_file(self, name: str, path: str) -> int:
        """
        Streams the file at `path` into a new member called `name`.

        Returns:
            The number of source bytes archived.

        Raises:
            ArchiveClosedError: If the archive was aborted or the sink failed.
            OSError: If the source file cannot be read.
        """
        self._check_open()
        size = await asyncio.to_thread(os.path.getsize, path)
        info = self._new_entry(name, size)

        async with aiofiles.open(path, "rb") as source:
            with self._zip.open(info, mode="w") as member:
                self.names.append(name)
                while chunk := await source.read(self.chunk_size):
                    self._check_open()
                    await asyncio.to_thread(member.write, chunk)
                    await self._flush()
        self._check_open()
        await self._flush()
        return size

    async def add_text(self, name: str, text: str) -> None:
        """Writes a small in-memory text member."""
        self._check_open()
        data = text.encode("utf-8")
        info = self._new_entry(name, len(data))
        with self._zip.open(info, mode="w") as member:
            self.names.append(name)
            member.write(data)
        await self._flush()

    async def finalize(self) -> None:
        """Writes the central directory. The archive accepts no more members."""
        self._check_open()
        self._zip.close()
        self.finalized = True
        await self._flush()
        log.debug(f"Archive finalized with {len(self.names)} entries.")

    def abort(self) -> None:
        """Stops the archive without writing a central directory. Idempotent."""
        if self.aborted or self.finalized:
            return
        self.aborted = True
        self._sink.discard()
        log.debug("Archive aborted.")
