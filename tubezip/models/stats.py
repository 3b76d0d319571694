"""
Dataclass for tracking the outcome of a single batch.
"""

import time
from dataclasses import dataclass, field


@dataclass
class BatchStats:
    """Counts what happened to the items of one batch."""

    items_total: int = 0
    items_archived: int = 0
    items_failed: int = 0
    bytes_archived: int = 0
    _start_time: float = field(default_factory=time.monotonic, repr=False)

    @property
    def duration_s(self) -> float:
        return time.monotonic() - self._start_time

    def record_archived(self, size_bytes: int) -> None:
        self.items_archived += 1
        self.bytes_archived += size_bytes

    def record_failed(self) -> None:
        self.items_failed += 1
