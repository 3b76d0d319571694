import asyncio
import itertools
import os

import pytest

from tubezip.exceptions import RetrievalError
from tubezip.media.runner import RunResult, new_token, output_template
from tubezip.storage.jobs import JobRegistry
from tubezip.utils.structured_logger import BatchLogger, StructuredLogger

_pids = itertools.count(90000)


class FakeProcess:
    """Stands in for asyncio.subprocess.Process."""

    def __init__(self):
        self.pid = next(_pids)
        self.returncode = None
        self._exited = asyncio.Event()

    def exit(self, code: int) -> None:
        self.returncode = code
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


class FakeRunner:
    """
    Mimics YtDlpRunner. The URL decides what happens:

    - "ok:<title>[:<ext>]" writes `<token>.<title>.<ext>` into the output dir
    - "fail"              exits 1
    - "nofile"            exits 0 without producing a file
    - "hang"              blocks until the process is terminated
    """

    def __init__(self, payload: bytes = b"media-bytes"):
        self.payload = payload
        self.calls: list[tuple[str, str]] = []
        self.processes: list[FakeProcess] = []
        self.hanging = asyncio.Event()

    async def run(self, url, mode, out_dir, on_spawn=None) -> RunResult:
        self.calls.append((url, str(getattr(mode, "value", mode))))
        token = new_token()
        pattern = output_template(out_dir, token)
        process = FakeProcess()
        self.processes.append(process)
        if on_spawn:
            on_spawn(process)
        await asyncio.sleep(0)

        if url == "hang":
            self.hanging.set()
            await process.wait()
            raise RetrievalError(
                f"yt-dlp failed ({process.returncode}): terminated",
                returncode=process.returncode,
            )
        if url == "fail":
            process.exit(1)
            raise RetrievalError(
                "yt-dlp failed (1): ERROR: Video unavailable",
                returncode=1,
                output="ERROR: Video unavailable",
            )
        if url.startswith("ok:"):
            parts = url.split(":")
            title = parts[1]
            ext = parts[2] if len(parts) > 2 else "mp4"
            with open(os.path.join(out_dir, f"{token}.{title}.{ext}"), "wb") as f:
                f.write(self.payload)
        process.exit(0)
        return RunResult(returncode=0, stdout="", stderr="", pattern=pattern)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def registry():
    return JobRegistry(ttl_seconds=600)


@pytest.fixture
def batch_logger():
    return BatchLogger(StructuredLogger("tubezip.test", enable_json=False))


@pytest.fixture
def recorded_terminations(monkeypatch):
    """Replaces the terminator used by the orchestrator with a recorder."""
    terminated = []

    def fake_terminate(process, grace=2.0):
        terminated.append(process)
        if process.returncode is None:
            process.exit(-15)

    monkeypatch.setattr("tubezip.core.orchestrator.terminate", fake_terminate)
    return terminated
