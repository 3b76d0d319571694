"""
The batch orchestrator: downloads a list of items one after another and
streams each result into a ZIP archive as soon as it is ready.
"""

import asyncio
import logging
import os
import time
import uuid
from contextlib import suppress

from tubezip.exceptions import RetrievalError, SetupError
from tubezip.media.runner import YtDlpRunner, find_downloaded_file, title_from_saved_name
from tubezip.media.terminator import DEFAULT_GRACE_SECONDS, terminate
from tubezip.models.config import DEFAULT_CHUNK_SIZE
from tubezip.models.item import Item, JobStatus, Mode
from tubezip.models.stats import BatchStats
from tubezip.storage.jobs import JobRegistry
from tubezip.storage.session import SessionDirectory
from tubezip.utils.filename import sanitize, split_extension
from tubezip.utils.structured_logger import BatchLogger, create_structured_logger

from .archive import ArchiveClosedError, Send, StreamingZipWriter

log = logging.getLogger(__name__)

DIAGNOSTIC_MESSAGE = "Failed to download an item: {error}"


class NameAllocator:
    """
    Hands out unique archive entry names. A name seen before gets a counter
    before its extension: 'Song.mp4', 'Song (1).mp4', 'Song (2).mp4'.
    """

    def __init__(self):
        self._collisions: dict[str, int] = {}

    def allocate(self, name: str) -> str:
        if name not in self._collisions:
            self._collisions[name] = 0
            return name

        stem, ext = split_extension(name)
        while True:
            self._collisions[name] += 1
            candidate = f"{stem} ({self._collisions[name]}){ext}"
            if candidate not in self._collisions:
                self._collisions[candidate] = 0
                return candidate


class BatchOrchestrator:
    """
    Drives one batch request from setup to a terminal job state.

    Usage from the HTTP layer:
        orchestrator.prepare(send)   # session dir, job 'running', archive
        ... send response headers ...
        await orchestrator.run()     # download, archive, finalize
        ... write response EOF ...
        orchestrator.complete()      # job 'done', cleanup

    `cancel()` is the disconnect path. It may be called at any time, from a
    watcher task or from the handler being cancelled, while `run()` is
    suspended on a download or a write.
    """

    def __init__(
        self,
        items: list[Item],
        mode: Mode,
        runner: YtDlpRunner,
        registry: JobRegistry,
        session: SessionDirectory,
        job_id: str | None = None,
        batch_logger: BatchLogger | None = None,
        kill_grace_seconds: float = DEFAULT_GRACE_SECONDS,
        compression_level: int = 9,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.items = list(items)
        self.mode = Mode(mode)
        self.runner = runner
        self.registry = registry
        self.session = session
        self.job_id = job_id or uuid.uuid4().hex
        self.batch_logger = batch_logger or create_structured_logger()[1]
        self.kill_grace_seconds = kill_grace_seconds
        self.compression_level = compression_level
        self.chunk_size = chunk_size

        self.stats = BatchStats(items_total=len(self.items))
        self.active_processes: set[asyncio.subprocess.Process] = set()
        self.names = NameAllocator()
        self.writer: StreamingZipWriter | None = None
        self._cancelled = False
        self._finished = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def prepare(self, send: Send) -> None:
        """
        Creates the session directory, registers the job and opens the archive.

        Raises:
            SetupError: After cleaning up, if any of these steps fails.
        """
        try:
            self.session.create()
            self.registry.set_status(self.job_id, JobStatus.RUNNING)
            self.writer = StreamingZipWriter(
                send,
                compression_level=self.compression_level,
                chunk_size=self.chunk_size,
            )
        except Exception as e:
            self.session.remove()
            self.registry.set_status(self.job_id, JobStatus.ERROR)
            self.batch_logger.batch_failed(self.job_id, str(e))
            if isinstance(e, SetupError):
                raise
            raise SetupError(f"Could not start batch: {e}") from e

        self.batch_logger.batch_started(self.job_id, len(self.items), self.mode.value)

    async def run(self) -> BatchStats:
        """
        Processes every item in order, then finalizes the archive.

        Per-item failures become diagnostic entries. A closed stream turns into
        a cancellation. Any other error marks the job as failed and is re-raised.
        """
        if self.writer is None:
            raise SetupError("prepare() must be called before run().")

        try:
            for item in self.items:
                if self._cancelled:
                    break
                await self._process_item(item)

            if not self._cancelled:
                await self.writer.finalize()
        except ArchiveClosedError:
            if not self._cancelled:
                log.info(f"Batch {self.job_id}: client went away while streaming.")
                self.cancel()
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception as e:
            self.fail(e)
            raise

        return self.stats

    async def _process_item(self, item: Item) -> None:
        spawned: list[asyncio.subprocess.Process] = []

        def on_spawn(process: asyncio.subprocess.Process) -> None:
            spawned.append(process)
            self._track_process(process)

        try:
            try:
                result = await self.runner.run(
                    item.fetch_url, self.mode, self.session.path, on_spawn=on_spawn
                )
            except asyncio.CancelledError:
                # Signal the live process before its handle is dropped below
                self.cancel()
                raise
            finally:
                # run() only returns once the process has closed
                self.active_processes.difference_update(spawned)
            file_path = find_downloaded_file(self.session.path, result.pattern)
            if not file_path:
                raise RetrievalError("yt-dlp finished but no output file was found.")
        except RetrievalError as e:
            if self._cancelled:
                return
            await self._append_diagnostic(item, e)
            return

        if self._cancelled:
            return

        _, ext = split_extension(os.path.basename(file_path))
        title = item.title or title_from_saved_name(file_path, result.pattern)
        entry_name = self.names.allocate(f"{sanitize(title)}{ext}")

        try:
            size = await self.writer.add_file(entry_name, file_path)
        except OSError as e:
            if self._cancelled:
                return
            await self._append_diagnostic(item, e)
            return
        finally:
            with suppress(OSError):
                os.remove(file_path)

        self.stats.record_archived(size)
        self.batch_logger.item_archived(self.job_id, item.label, entry_name, size)

    def _track_process(self, process: asyncio.subprocess.Process) -> None:
        if self._cancelled:
            terminate(process, self.kill_grace_seconds)
            return
        self.active_processes.add(process)

    async def _append_diagnostic(self, item: Item, error: Exception) -> None:
        self.stats.record_failed()
        self.batch_logger.item_failed(self.job_id, item.label, str(error))
        name = self.names.allocate(f"error-{int(time.time() * 1000)}.txt")
        await self.writer.add_text(name, DIAGNOSTIC_MESSAGE.format(error=error))

    def cancel(self) -> None:
        """
        Stops the batch: kills running downloads, aborts the archive, removes
        the session directory and marks the job cancelled. Idempotent.
        """
        if self._cancelled or self._finished:
            return
        self._cancelled = True
        self.batch_logger.batch_cancelled(self.job_id, len(self.active_processes))

        for process in list(self.active_processes):
            terminate(process, self.kill_grace_seconds)
        if self.writer is not None:
            self.writer.abort()
        self.session.remove()
        self.registry.set_status(self.job_id, JobStatus.CANCELLED)

    def complete(self) -> None:
        """Marks the job done once the archive has been fully delivered."""
        if self._cancelled or self._finished:
            return
        self._finished = True
        self.session.remove()
        self.registry.set_status(self.job_id, JobStatus.DONE)
        self.batch_logger.batch_completed(
            self.job_id,
            self.stats.items_archived,
            self.stats.items_failed,
            self.stats.bytes_archived,
            self.stats.duration_s,
        )

    def fail(self, error: Exception) -> None:
        """Handles an unexpected error after the response started streaming."""
        if self._cancelled or self._finished:
            return
        self._finished = True
        log.error(
            f"Batch {self.job_id} failed: {error}",
            exc_info=log.getEffectiveLevel() == logging.DEBUG,
        )
        self.batch_logger.batch_failed(self.job_id, str(error))
        for process in list(self.active_processes):
            terminate(process, self.kill_grace_seconds)
        if self.writer is not None:
            self.writer.abort()
        self.session.remove()
        self.registry.set_status(self.job_id, JobStatus.ERROR)
