"""Bounded, reusable pool of recognition engine handles.

Engine initialization is expensive, so handles are kept in a LIFO idle
stack and reused across jobs. The pool never blocks: when the stack is
empty a new handle is created beyond the bound ("soft overflow"), and
surplus handles are disposed on release so the retained set stays at or
below ``max_workers``. Once :meth:`WorkerPool.cleanup` has run, handles
still checked out are disposed when they come back.
"""

import itertools
import threading
import warnings
from collections.abc import Callable
from dataclasses import dataclass

from sitescan.exceptions import (
    EngineError,
    EngineOverflow,
    EngineUnavailableError,
    SiteScanError,
)
from sitescan.ocr.tesseract_engine import RecognitionEngine
from sitescan.utils.logger import get_logger

logger = get_logger(__name__)

EngineFactory = Callable[[], RecognitionEngine]

_handle_ids = itertools.count(1)


@dataclass(eq=False)
class WorkerHandle:
    """A loaded recognition engine owned by exactly one party at a time."""

    engine: RecognitionEngine
    handle_id: int
    overflow: bool = False
    uses: int = 0


@dataclass
class PoolStats:
    """Snapshot of pool counters."""

    max_workers: int
    idle: int
    in_use: int
    created: int
    disposed: int
    overflow_created: int


class WorkerPool:
    """Thread-safe LIFO store of :class:`WorkerHandle` objects.

    Args:
        engine_factory: Zero-argument callable building a new engine.
        max_workers: Upper bound on idle handles kept by the pool.
    """

    def __init__(self, engine_factory: EngineFactory, max_workers: int = 2) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.engine_factory = engine_factory
        self.max_workers = max_workers
        self._idle: list[WorkerHandle] = []
        self._checked_out: set[int] = set()
        self._lock = threading.Lock()
        self._created = 0
        self._disposed = 0
        self._overflow_created = 0
        self._closed = False

    def start(self) -> int:
        """Warm the pool up to ``max_workers`` idle handles.

        Creation failures are logged and tolerated, so the pool may start
        smaller than configured; :meth:`acquire` still creates handles
        lazily later. Starting a pool that was cleaned up reopens it.

        Returns:
            Number of idle handles after warm-up.
        """
        with self._lock:
            self._closed = False
            missing = self.max_workers - len(self._idle) - len(self._checked_out)

        for _ in range(max(missing, 0)):
            try:
                handle = self._create_handle(overflow=False)
            except (EngineError, EngineUnavailableError) as exc:
                logger.error("Worker warm-up failed: %s", exc)
                continue
            with self._lock:
                self._idle.append(handle)

        idle = self.idle_count
        logger.info("Worker pool ready with %d/%d handles", idle, self.max_workers)
        return idle

    def acquire(self) -> WorkerHandle:
        """Pop the most recently released handle, or create one.

        Raises:
            EngineError: If the pool is empty and a new engine cannot be built.
        """
        with self._lock:
            handle = self._idle.pop() if self._idle else None
            in_use = len(self._checked_out)
            if handle is not None:
                self._checked_out.add(handle.handle_id)

        if handle is None:
            overflow = in_use >= self.max_workers
            if overflow:
                message = (
                    f"No idle workers ({in_use} in use, max {self.max_workers}); "
                    "creating overflow worker"
                )
                logger.warning(message)
                warnings.warn(message, EngineOverflow, stacklevel=2)
            handle = self._create_handle(overflow=overflow)
            with self._lock:
                self._checked_out.add(handle.handle_id)
                if overflow:
                    self._overflow_created += 1

        handle.uses += 1
        logger.debug("Acquired worker %d", handle.handle_id)
        return handle

    def release(self, handle: WorkerHandle) -> None:
        """Return a handle; it is disposed when the idle stack is full or
        the pool has been cleaned up.

        Releasing a handle that is not checked out is ignored with a
        warning so a handle is never stored twice.
        """
        with self._lock:
            if handle.handle_id not in self._checked_out:
                logger.warning("Ignoring release of unknown worker %d", handle.handle_id)
                return
            self._checked_out.discard(handle.handle_id)
            keep = not self._closed and len(self._idle) < self.max_workers
            if keep:
                self._idle.append(handle)

        if keep:
            logger.debug("Released worker %d to pool", handle.handle_id)
        else:
            logger.debug("Pool full or closed, disposing worker %d", handle.handle_id)
            self._dispose(handle)

    def cleanup(self) -> None:
        """Dispose every idle handle and close the pool; used at shutdown."""
        with self._lock:
            self._closed = True
            idle, self._idle = self._idle, []
        for handle in idle:
            self._dispose(handle)
        logger.info("Worker pool cleaned up (%d handles disposed)", len(idle))

    @property
    def idle_count(self) -> int:
        with self._lock:
            return len(self._idle)

    @property
    def in_use_count(self) -> int:
        with self._lock:
            return len(self._checked_out)

    def stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                max_workers=self.max_workers,
                idle=len(self._idle),
                in_use=len(self._checked_out),
                created=self._created,
                disposed=self._disposed,
                overflow_created=self._overflow_created,
            )

    def _create_handle(self, overflow: bool) -> WorkerHandle:
        try:
            engine = self.engine_factory()
        except SiteScanError:
            raise
        except Exception as exc:
            raise EngineError(f"Could not create recognition engine: {exc}") from exc
        handle = WorkerHandle(engine=engine, handle_id=next(_handle_ids), overflow=overflow)
        with self._lock:
            self._created += 1
        logger.debug("Created worker %d (overflow=%s)", handle.handle_id, overflow)
        return handle

    def _dispose(self, handle: WorkerHandle) -> None:
        try:
            handle.engine.dispose()
        except Exception as exc:
            logger.warning("Disposing worker %d failed: %s", handle.handle_id, exc)
        with self._lock:
            self._disposed += 1
