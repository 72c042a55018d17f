"""Tests for the bounded engine handle pool."""

import threading
import warnings

import pytest

from conftest import FakeEngine, FakeEngineFactory
from sitescan.exceptions import EngineError, EngineOverflow
from sitescan.ocr.worker_pool import WorkerPool


@pytest.fixture
def pool(engine_factory: FakeEngineFactory) -> WorkerPool:
    return WorkerPool(engine_factory, max_workers=2)


class TestWorkerPoolLifecycle:
    """Tests for warm-up and shutdown."""

    def test_rejects_zero_workers(self, engine_factory: FakeEngineFactory) -> None:
        with pytest.raises(ValueError):
            WorkerPool(engine_factory, max_workers=0)

    def test_start_warms_to_max(self, pool: WorkerPool, engine_factory: FakeEngineFactory) -> None:
        assert pool.start() == 2
        assert pool.idle_count == 2
        assert len(engine_factory.engines) == 2

    def test_start_is_idempotent(self, pool: WorkerPool, engine_factory: FakeEngineFactory) -> None:
        pool.start()
        pool.start()
        assert pool.idle_count == 2
        assert len(engine_factory.engines) == 2

    def test_warm_up_failure_tolerated(self) -> None:
        def broken_factory() -> FakeEngine:
            raise RuntimeError("no tessdata")

        pool = WorkerPool(broken_factory, max_workers=2)
        assert pool.start() == 0
        assert pool.idle_count == 0

    def test_cleanup_disposes_idle(self, pool: WorkerPool, engine_factory: FakeEngineFactory) -> None:
        pool.start()
        pool.cleanup()
        assert pool.idle_count == 0
        assert all(engine.disposed for engine in engine_factory.engines)
        assert pool.stats().disposed == 2

    def test_release_after_cleanup_disposes(self, pool: WorkerPool) -> None:
        handle = pool.acquire()
        pool.cleanup()
        pool.release(handle)
        assert pool.idle_count == 0
        assert pool.in_use_count == 0
        assert handle.engine.disposed is True

    def test_start_reopens_after_cleanup(self, pool: WorkerPool) -> None:
        pool.start()
        pool.cleanup()
        assert pool.start() == 2
        handle = pool.acquire()
        pool.release(handle)
        assert pool.idle_count == 2
        assert handle.engine.disposed is False


class TestAcquireRelease:
    """Tests for handle checkout and return."""

    def test_acquire_creates_lazily(self, pool: WorkerPool, engine_factory: FakeEngineFactory) -> None:
        handle = pool.acquire()
        assert handle.overflow is False
        assert len(engine_factory.engines) == 1
        assert pool.in_use_count == 1

    def test_lifo_reuse(self, pool: WorkerPool) -> None:
        first = pool.acquire()
        second = pool.acquire()
        pool.release(first)
        pool.release(second)
        assert pool.acquire() is second
        assert pool.acquire() is first

    def test_reuse_counts_uses(self, pool: WorkerPool) -> None:
        handle = pool.acquire()
        pool.release(handle)
        again = pool.acquire()
        assert again is handle
        assert again.uses == 2

    def test_overflow_warns_and_creates(self, pool: WorkerPool) -> None:
        pool.acquire()
        pool.acquire()
        with pytest.warns(EngineOverflow):
            extra = pool.acquire()
        assert extra.overflow is True
        assert pool.in_use_count == 3
        assert pool.stats().overflow_created == 1

    def test_release_disposes_when_full(self, pool: WorkerPool) -> None:
        handles = [pool.acquire(), pool.acquire()]
        with pytest.warns(EngineOverflow):
            handles.append(pool.acquire())
        for handle in handles:
            pool.release(handle)
        assert pool.idle_count == 2
        assert handles[2].engine.disposed is True
        assert not handles[0].engine.disposed
        assert not handles[1].engine.disposed

    def test_unknown_release_ignored(self, pool: WorkerPool) -> None:
        handle = pool.acquire()
        pool.release(handle)
        pool.release(handle)
        assert pool.idle_count == 1

    def test_acquire_propagates_factory_failure(self) -> None:
        def broken_factory() -> FakeEngine:
            raise EngineError("cannot load language data")

        pool = WorkerPool(broken_factory, max_workers=1)
        with pytest.raises(EngineError, match="language data"):
            pool.acquire()
        assert pool.in_use_count == 0

    def test_factory_errors_wrapped(self) -> None:
        def broken_factory() -> FakeEngine:
            raise OSError("disk full")

        pool = WorkerPool(broken_factory, max_workers=1)
        with pytest.raises(EngineError, match="disk full"):
            pool.acquire()

    def test_stats_snapshot(self, pool: WorkerPool) -> None:
        pool.start()
        handle = pool.acquire()
        stats = pool.stats()
        assert stats.max_workers == 2
        assert stats.idle == 1
        assert stats.in_use == 1
        assert stats.created == 2
        pool.release(handle)


class TestThreadSafety:
    """Tests for concurrent checkout from many threads."""

    def test_idle_never_exceeds_max(self, engine_factory: FakeEngineFactory) -> None:
        pool = WorkerPool(engine_factory, max_workers=2)
        errors: list[BaseException] = []

        def worker() -> None:
            try:
                for _ in range(50):
                    handle = pool.acquire()
                    try:
                        assert not handle.engine.disposed
                    finally:
                        pool.release(handle)
            except BaseException as exc:  # collected for the main thread
                errors.append(exc)

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", EngineOverflow)
            threads = [threading.Thread(target=worker) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert errors == []
        assert pool.in_use_count == 0
        assert pool.idle_count <= 2
        stats = pool.stats()
        assert stats.created - stats.disposed == pool.idle_count
