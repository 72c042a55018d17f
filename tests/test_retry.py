"""Tests for the bounded retry decorator."""

import asyncio
import inspect
import logging

import pytest

from sitescan.exceptions import DecodeError, EngineError
from sitescan.utils.retry import compute_delay, retry_with_backoff


class TestComputeDelay:
    """Tests for backoff delay calculation."""

    def test_exponential_growth(self) -> None:
        assert compute_delay(0, 1.0, 60.0) == 1.0
        assert compute_delay(1, 1.0, 60.0) == 2.0
        assert compute_delay(2, 1.0, 60.0) == 4.0

    def test_capped_at_max_delay(self) -> None:
        assert compute_delay(10, 1.0, 5.0) == 5.0


class TestSyncRetry:
    """Tests for retrying plain functions."""

    def test_succeeds_after_transient_failures(self) -> None:
        calls = []

        @retry_with_backoff(max_attempts=3, base_delay=0, retryable=(EngineError,))
        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise EngineError("timeout")
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3

    def test_raises_after_exhausting_attempts(self) -> None:
        calls = []

        @retry_with_backoff(max_attempts=3, base_delay=0, retryable=(EngineError,))
        def always_fails() -> None:
            calls.append(1)
            raise EngineError("crash")

        with pytest.raises(EngineError, match="crash"):
            always_fails()
        assert len(calls) == 3

    def test_non_retryable_error_propagates_immediately(self) -> None:
        calls = []

        @retry_with_backoff(max_attempts=3, base_delay=0, retryable=(EngineError,))
        def bad_input() -> None:
            calls.append(1)
            raise DecodeError("invalid bitmap")

        with pytest.raises(DecodeError):
            bad_input()
        assert len(calls) == 1

    def test_logs_each_retry(self, caplog: pytest.LogCaptureFixture) -> None:
        attempts = iter([EngineError("a"), EngineError("b"), None])

        @retry_with_backoff(max_attempts=3, base_delay=0, retryable=(EngineError,))
        def flaky() -> None:
            error = next(attempts)
            if error:
                raise error

        with caplog.at_level(logging.WARNING, logger="sitescan.utils.retry"):
            flaky()
        assert sum("retrying" in r.message for r in caplog.records) == 2

    def test_invalid_attempt_count(self) -> None:
        with pytest.raises(ValueError):
            retry_with_backoff(max_attempts=0)


class TestAsyncRetry:
    """Tests for retrying coroutine functions."""

    def test_async_succeeds_after_failures(self) -> None:
        calls = []

        @retry_with_backoff(max_attempts=3, base_delay=0, retryable=(EngineError,))
        async def flaky() -> int:
            calls.append(1)
            if len(calls) < 2:
                raise EngineError("engine crashed")
            return 42

        assert asyncio.run(flaky()) == 42
        assert len(calls) == 2

    def test_async_exhausted(self) -> None:
        @retry_with_backoff(max_attempts=2, base_delay=0, retryable=(EngineError,))
        async def always_fails() -> None:
            raise EngineError("down")

        with pytest.raises(EngineError):
            asyncio.run(always_fails())

    def test_wrapper_keeps_coroutine_nature(self) -> None:
        @retry_with_backoff(max_attempts=2, base_delay=0)
        async def coro() -> None:
            return None

        assert inspect.iscoroutinefunction(coro)
