"""
Stops a running yt-dlp process and the ffmpeg children it may have started.
"""

import asyncio
import logging
import os
import signal

log = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 2.0


def _send(process: asyncio.subprocess.Process, sig: int) -> bool:
    """Signals the process group on POSIX, the process itself elsewhere."""
    try:
        if os.name == "posix":
            os.killpg(process.pid, sig)
        elif sig == signal.SIGTERM:
            process.terminate()
        else:
            process.kill()
        return True
    except (ProcessLookupError, PermissionError):
        return False


def _force_kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    if _send(process, getattr(signal, "SIGKILL", signal.SIGTERM)):
        log.debug(f"Process {process.pid} ignored SIGTERM, sent SIGKILL.")


def terminate(
    process: asyncio.subprocess.Process | None,
    grace: float = DEFAULT_GRACE_SECONDS,
) -> None:
    """
    Asks a process to exit and schedules a forced kill if it is still alive
    after `grace` seconds. Returns immediately; safe to call repeatedly.
    """
    if process is None or process.returncode is not None:
        return

    if not _send(process, signal.SIGTERM):
        return
    log.debug(f"Sent SIGTERM to process {process.pid}.")

    loop = asyncio.get_running_loop()
    loop.call_later(grace, _force_kill, process)
