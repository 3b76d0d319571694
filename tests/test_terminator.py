"""Tests for process termination with a forced-kill fallback."""

import asyncio
import os
import signal
import sys

import pytest

from tubezip.media.terminator import terminate

pytestmark = pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")

IGNORES_SIGTERM = (
    "import signal, sys, time\n"
    "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
    "print('ready', flush=True)\n"
    "time.sleep(30)\n"
)


async def _spawn(*args, **kwargs) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        *args, start_new_session=True, **kwargs
    )


@pytest.mark.asyncio
async def test_terminate_sends_sigterm():
    process = await _spawn("sleep", "30")
    terminate(process, grace=5)
    await asyncio.wait_for(process.wait(), timeout=5)
    assert process.returncode == -signal.SIGTERM


@pytest.mark.asyncio
async def test_terminate_escalates_to_sigkill():
    process = await _spawn(
        sys.executable, "-c", IGNORES_SIGTERM, stdout=asyncio.subprocess.PIPE
    )
    assert (await process.stdout.readline()).strip() == b"ready"

    terminate(process, grace=0.2)
    await asyncio.wait_for(process.wait(), timeout=5)
    assert process.returncode == -signal.SIGKILL


@pytest.mark.asyncio
async def test_terminate_is_safe_to_repeat():
    process = await _spawn("sleep", "30")
    terminate(process, grace=0.1)
    terminate(process, grace=0.1)
    await asyncio.wait_for(process.wait(), timeout=5)
    # Already exited: nothing is signalled
    terminate(process)
    await asyncio.sleep(0.2)


@pytest.mark.asyncio
async def test_terminate_without_process():
    terminate(None)

