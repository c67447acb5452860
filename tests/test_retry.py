"""
Tests for tools/retry.py and tools/rate_limiter.py.
"""

import asyncio

import pytest

from tools.rate_limiter import RateLimiter
from tools.retry import RetryExhaustedError, is_retryable_error, retry_with_backoff


class StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


def flaky(*outcomes):
    """Coroutine factory that raises or returns the given outcomes in order."""
    calls = []

    async def fn():
        outcome = outcomes[len(calls)]
        calls.append(outcome)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return fn, calls


class TestIsRetryable:
    @pytest.mark.parametrize("error", [
        TimeoutError(),
        asyncio.TimeoutError(),
        ConnectionResetError(),
        Exception("fetch failed"),
        Exception("503 Service Unavailable"),
        Exception("Resource has been exhausted (e.g. check quota)."),
        StatusError("slow down", 429),
    ])
    def test_transient(self, error):
        assert is_retryable_error(error) is True

    @pytest.mark.parametrize("error", [
        ValueError("Invalid JSON"),
        KeyError("narration"),
        StatusError("bad request", 400),
    ])
    def test_permanent(self, error):
        assert is_retryable_error(error) is False


class TestRetryWithBackoff:
    def test_first_try(self):
        fn, calls = flaky("ok")
        assert asyncio.run(retry_with_backoff(fn, initial_delay=0)) == "ok"
        assert len(calls) == 1

    def test_recovers_after_transient(self):
        fn, calls = flaky(TimeoutError("timed out"), Exception("503"), "ok")
        assert asyncio.run(retry_with_backoff(fn, max_retries=3, initial_delay=0)) == "ok"
        assert len(calls) == 3

    def test_permanent_error_raised_immediately(self):
        fn, calls = flaky(ValueError("bad"), "ok")
        with pytest.raises(ValueError):
            asyncio.run(retry_with_backoff(fn, max_retries=3, initial_delay=0))
        assert len(calls) == 1

    def test_exhausted(self):
        error = StatusError("too many requests", 429)
        fn, calls = flaky(error, error, error)
        with pytest.raises(RetryExhaustedError) as excinfo:
            asyncio.run(retry_with_backoff(fn, max_retries=2, initial_delay=0))
        assert len(calls) == 3
        assert excinfo.value.attempts == 3
        assert excinfo.value.status_code == 429
        assert excinfo.value.retryable is True
        assert "(429)" in str(excinfo.value)


class TestRateLimiter:
    def test_acquire_consumes_tokens(self):
        limiter = RateLimiter(max_tokens=3, refill_rate=0.001, name="test")

        async def run():
            await limiter.acquire()
            await limiter.acquire()

        asyncio.run(run())
        assert limiter.available < 1.1

    def test_per_minute(self):
        limiter = RateLimiter.per_minute(30, name="test")
        assert limiter.max_tokens == 30
        assert limiter.refill_rate == pytest.approx(0.5)
