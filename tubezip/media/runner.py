"""
Runs one yt-dlp invocation and locates the file it produced.

yt-dlp chooses the final file name itself, so every invocation writes to the
template `<dir>/<token>.%(title)s.%(ext)s` with a fresh random token. The
token is the only part of the name known in advance: `find_downloaded_file`
looks it up by prefix and `title_from_saved_name` recovers the title yt-dlp
substituted. Switching to another retrieval tool means changing these three
functions and the argument profiles, nothing else.
"""

import asyncio
import logging
import os
import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass

from tubezip.exceptions import RetrievalError
from tubezip.models.item import Mode

from .terminator import DEFAULT_GRACE_SECONDS, terminate

log = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"
TOKEN_LENGTH = 8
TITLE_PLACEHOLDER = ".%(title)s"
PARTIAL_SUFFIXES = (".part", ".ytdl", ".temp")

ARGUMENT_PROFILES: dict[Mode, list[str]] = {
    Mode.AUDIO: ["-x", "--audio-format", "m4a"],
    Mode.VIDEO: [
        "-f",
        "bestvideo[ext=mp4]+bestaudio[acodec^=mp4a]/bestvideo[ext=mp4]+bestaudio/best",
        "--merge-output-format",
        "mp4",
        "--remux-video",
        "mp4",
        "--audio-format",
        "m4a",
        "--postprocessor-args",
        "ffmpeg:-c:v copy -c:a aac -b:a 192k",
    ],
}

SpawnObserver = Callable[[asyncio.subprocess.Process], None]


def new_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def output_template(out_dir: str, token: str) -> str:
    """The `-o` argument handed to yt-dlp."""
    return os.path.join(out_dir, f"{token}{TITLE_PLACEHOLDER}.%(ext)s")


def _token_of(pattern: str) -> str:
    return os.path.basename(pattern).split(TITLE_PLACEHOLDER)[0]


def find_downloaded_file(directory: str, pattern: str) -> str | None:
    """
    Returns the path of the finished file matching the template's token, or
    None if there is none (or the directory has already been removed).
    """
    token = _token_of(pattern)
    try:
        names = sorted(os.listdir(directory))
    except FileNotFoundError:
        return None
    for name in names:
        if name.startswith(token) and not name.endswith(PARTIAL_SUFFIXES):
            return os.path.join(directory, name)
    return None


def title_from_saved_name(file_path: str, pattern: str) -> str:
    """Recovers the title yt-dlp substituted into the template."""
    token = _token_of(pattern)
    name = os.path.basename(file_path)
    if name.startswith(token + "."):
        name = name[len(token) + 1 :]
    stem, dot, _ = name.rpartition(".")
    return stem if dot else name


@dataclass
class RunResult:
    """Outcome of a successful yt-dlp invocation."""

    returncode: int
    stdout: str
    stderr: str
    pattern: str


class YtDlpRunner:
    """Spawns yt-dlp with a fixed argument profile per mode. Never retries."""

    def __init__(
        self, binary: str = "yt-dlp", kill_grace_seconds: float = DEFAULT_GRACE_SECONDS
    ):
        self.binary = binary
        self.kill_grace_seconds = kill_grace_seconds

    def build_args(self, url: str, mode: Mode, pattern: str) -> list[str]:
        return [*ARGUMENT_PROFILES[Mode(mode)], "-o", pattern, url]

    async def run(
        self,
        url: str,
        mode: Mode,
        out_dir: str,
        on_spawn: SpawnObserver | None = None,
    ) -> RunResult:
        """
        Downloads `url` into `out_dir`.

        `on_spawn` is called with the live process before any output is read,
        so callers can register it for cancellation.

        Raises:
            RetrievalError: If the process cannot be started or exits non-zero.
        """
        if not url:
            raise RetrievalError("No URL given to yt-dlp.")

        pattern = output_template(out_dir, new_token())
        args = self.build_args(url, mode, pattern)
        log.debug(f"Spawning {self.binary} for {url} ({Mode(mode).value})")

        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            raise RetrievalError(f"Could not start {self.binary}: {e}") from e

        if on_spawn:
            try:
                on_spawn(process)
            except Exception as e:
                log.warning(f"Spawn observer failed for pid {process.pid}: {e}")

        try:
            stdout_b, stderr_b = await process.communicate()
        except asyncio.CancelledError:
            terminate(process, self.kill_grace_seconds)
            raise

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")

        if process.returncode != 0:
            output = stderr or stdout
            raise RetrievalError(
                f"yt-dlp failed ({process.returncode}): {output.strip()}",
                returncode=process.returncode,
                output=output,
            )

        return RunResult(
            returncode=process.returncode,
            stdout=stdout,
            stderr=stderr,
            pattern=pattern,
        )
