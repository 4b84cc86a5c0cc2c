"""
BatchStats - Counters for one optimization chunk.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import List


@dataclass
class BatchStats:
    """
    Statistics for one chunk.

    Worker threads update the counters through record_* methods, which
    hold the lock.

    Attributes:
        processed: Candidates handled (variants written or nothing needed)
        skipped: Candidates whose first-width variant already existed
        failed: Candidates that raised an error
        variants_created: Variant files written
        variants_deleted: Variant files removed in cleanup mode
        bytes_generated: Total bytes of variants written
        start_time: Start timestamp
        error_details: "path: error" messages for failures
    """
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    variants_created: int = 0
    variants_deleted: int = 0
    bytes_generated: int = 0
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_processed(self, created: int, deleted: int, nbytes: int) -> None:
        with self._lock:
            self.processed += 1
            self.variants_created += created
            self.variants_deleted += deleted
            self.bytes_generated += nbytes

    def record_skipped(self) -> None:
        with self._lock:
            self.skipped += 1

    def record_failed(self, path: str, error: Exception, deleted: int = 0) -> None:
        with self._lock:
            self.failed += 1
            self.variants_deleted += deleted
            self.error_details.append(f"{path}: {error}")

    @property
    def completed_count(self) -> int:
        """Total completed (processed + skipped + failed)."""
        return self.processed + self.skipped + self.failed

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def rate_per_second(self) -> float:
        """Completed candidates per second."""
        if self.elapsed_seconds > 0:
            return self.completed_count / self.elapsed_seconds
        return 0.0
