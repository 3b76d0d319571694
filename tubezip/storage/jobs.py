"""
In-memory registry of batch job states with a time-to-live (TTL).
Nothing is persisted: a restart forgets every job.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from tubezip.models.config import DEFAULT_JOB_TTL_SECONDS
from tubezip.models.item import JobStatus

log = logging.getLogger(__name__)


@dataclass
class Job:
    id: str
    status: JobStatus
    updated_at: float


class JobRegistry:
    """
    A thread-safe map of job id to status.

    Expired entries are swept on every write rather than by a background
    task. Terminal statuses are sticky: once a job is done, errored or
    cancelled, only a new `running` write (a new batch reusing the id) can
    replace it.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_JOB_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def set_status(self, job_id: str | None, status: JobStatus) -> None:
        """Upserts a job's status and evicts stale entries. No-op without an id."""
        if not job_id:
            return
        status = JobStatus(status)

        with self._lock:
            now = self._clock()
            current = self._jobs.get(job_id)
            if (
                current is not None
                and current.status.is_terminal
                and status is not JobStatus.RUNNING
                and not self._is_expired(current, now)
            ):
                log.debug(
                    f"Job '{job_id}' is already {current.status.value}; "
                    f"ignoring {status.value}."
                )
            else:
                self._jobs[job_id] = Job(id=job_id, status=status, updated_at=now)
            self._evict_expired(now)

    def get_status(self, job_id: str | None) -> JobStatus:
        if not job_id:
            return JobStatus.UNKNOWN
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or self._is_expired(job, self._clock()):
                return JobStatus.UNKNOWN
            return job.status

    def _is_expired(self, job: Job, now: float) -> bool:
        return now - job.updated_at > self.ttl_seconds

    def _evict_expired(self, now: float) -> None:
        expired = [jid for jid, job in self._jobs.items() if self._is_expired(job, now)]
        for jid in expired:
            del self._jobs[jid]
        if expired:
            log.debug(f"Job registry: evicted {len(expired)} expired entries.")
