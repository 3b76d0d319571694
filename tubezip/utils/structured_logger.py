"""
Event logging for downloads and batches.

Each event is one console line, `[event] key=value ...`, sent through the
standard logging tree (and so through RichHandler). When a log directory is
configured the same event is also appended to a JSON Lines file, one object
per line, for later inspection.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

MB = 1024 * 1024


def _megabytes(size_bytes: int) -> float:
    return round(size_bytes / MB, 2)


class _JsonLinesSink:
    """Appends events to `<dir>/tubezip_<start time>.jsonl`."""

    def __init__(self, log_dir: Path):
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.path = log_dir / f"tubezip_{stamp}.jsonl"
        self._file: TextIO | None = open(self.path, "a", encoding="utf-8")  # noqa: SIM115

    def write(self, record: dict[str, Any]) -> None:
        if self._file is None:
            return
        try:
            self._file.write(json.dumps(record, default=str) + "\n")
            self._file.flush()
        except (OSError, ValueError) as e:
            print(f"Could not write event log {self.path}: {e}", file=sys.stderr)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class StructuredLogger:
    """
    Logs named events with keyword context.

        events = StructuredLogger("tubezip")
        events.info("item_archived", job_id="abc", entry="Song.mp4")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        self.name = name
        self.enable_console = enable_console
        self._logger = logging.getLogger(name)
        self._sink = _JsonLinesSink(log_dir) if enable_json and log_dir else None
        # Added to every JSON record
        self._common: dict[str, Any] = {"pid": os.getpid()}

    @property
    def enable_json(self) -> bool:
        return self._sink is not None

    def _log(self, level: int, event: str, **context: Any) -> None:
        if self.enable_console and self._logger.isEnabledFor(level):
            fields = " ".join(f"{k}={v}" for k, v in context.items() if v is not None)
            self._logger.log(level, f"[{event}] {fields}".rstrip())
        if self._sink is not None:
            self._sink.write(
                {
                    "ts": datetime.now(timezone.utc).isoformat(),
                    "level": logging.getLevelName(level),
                    "event": event,
                    **self._common,
                    **context,
                }
            )

    def debug(self, event: str, **context: Any) -> None:
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context: Any) -> None:
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context: Any) -> None:
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context: Any) -> None:
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        if self._sink is not None:
            self._sink.close()

    def __enter__(self) -> "StructuredLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class BatchLogger:
    """The events a batch or single download goes through."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def batch_started(self, job_id: str | None, item_count: int, mode: str):
        self.logger.info("batch_started", job_id=job_id, items=item_count, mode=mode)

    def item_archived(
        self, job_id: str | None, item: str, entry_name: str, size_bytes: int
    ):
        self.logger.info(
            "item_archived",
            job_id=job_id,
            item=item,
            entry=entry_name,
            size_mb=_megabytes(size_bytes),
        )

    def item_failed(self, job_id: str | None, item: str, error: str):
        self.logger.warning("item_failed", job_id=job_id, item=item, error=error)

    def batch_cancelled(self, job_id: str | None, active_processes: int):
        self.logger.warning(
            "batch_cancelled", job_id=job_id, killing=active_processes
        )

    def batch_completed(
        self,
        job_id: str | None,
        archived: int,
        failed: int,
        size_bytes: int,
        duration_s: float,
    ):
        self.logger.info(
            "batch_completed",
            job_id=job_id,
            archived=archived,
            failed=failed,
            size_mb=_megabytes(size_bytes),
            seconds=round(duration_s, 1),
        )

    def batch_failed(self, job_id: str | None, error: str):
        self.logger.error("batch_failed", job_id=job_id, error=error)

    def single_completed(self, item: str, filename: str, size_bytes: int):
        self.logger.info(
            "single_completed", item=item, file=filename, size_mb=_megabytes(size_bytes)
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, BatchLogger]:
    """Returns the base event logger and the batch logger wrapping it."""
    base = StructuredLogger("tubezip.events", log_dir=log_dir, enable_json=enable_json)
    return base, BatchLogger(base)
