"""Thread-safe registry of job status snapshots.

Jobs are written only by the controller that owns them and may be read
by anyone polling for progress. Retention is bounded: finished jobs are
dropped after ``ttl_seconds`` and, once ``max_entries`` is exceeded, the
least recently updated jobs are evicted, finished ones first.
"""

import copy
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from sitescan.exceptions import JobNotFoundError
from sitescan.utils.config import RegistryConfig
from sitescan.utils.logger import get_logger

from .models import Job

logger = get_logger(__name__)


class StatusRegistry:
    """Concurrent map of job id to the latest :class:`Job` snapshot.

    Args:
        config: Retention limits.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        config: RegistryConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or RegistryConfig()
        self._clock = clock
        self._jobs: OrderedDict[str, Job] = OrderedDict()
        self._finished_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def register(self, job: Job) -> None:
        """Store a new job."""
        self.update(job)

    def update(self, job: Job) -> None:
        """Store a snapshot of the job's current state."""
        snapshot = copy.copy(job)
        with self._lock:
            self._jobs[job.id] = snapshot
            self._jobs.move_to_end(job.id)
            if job.status.is_terminal:
                self._finished_at.setdefault(job.id, self._clock())
            self._purge_expired_locked()
            self._evict_locked()

    def get(self, job_id: str) -> Job | None:
        """Return a copy of the latest snapshot, or ``None``."""
        with self._lock:
            self._purge_expired_locked()
            job = self._jobs.get(job_id)
            return copy.copy(job) if job is not None else None

    def require(self, job_id: str) -> Job:
        """Like :meth:`get` but raises :class:`JobNotFoundError` on a miss."""
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return job

    def list_jobs(self) -> list[Job]:
        """Return snapshots of all retained jobs, newest update last."""
        with self._lock:
            self._purge_expired_locked()
            return [copy.copy(job) for job in self._jobs.values()]

    def purge_expired(self) -> int:
        """Drop finished jobs older than the TTL; returns how many were dropped."""
        with self._lock:
            return self._purge_expired_locked()

    def _purge_expired_locked(self) -> int:
        ttl = self.config.ttl_seconds
        if ttl <= 0:
            return 0
        now = self._clock()
        expired = [jid for jid, done in self._finished_at.items() if now - done >= ttl]
        for job_id in expired:
            self._remove_locked(job_id)
        if expired:
            logger.debug("Purged %d expired jobs", len(expired))
        return len(expired)

    def _evict_locked(self) -> None:
        while len(self._jobs) > self.config.max_entries:
            victim = next(
                (jid for jid in self._jobs if jid in self._finished_at),
                next(iter(self._jobs)),
            )
            logger.debug("Evicting job %s from registry", victim)
            self._remove_locked(victim)

    def _remove_locked(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)
        self._finished_at.pop(job_id, None)
