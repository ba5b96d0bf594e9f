"""Unit tests for TokenBucketRateLimiter."""

import threading
import time

import pytest

from thinktank.context import RunContext
from thinktank.llm.errors import ErrorCategory, LlmError
from thinktank.orchestrator import TokenBucketRateLimiter


class TestTokenBucketRateLimiter:
    """Tests for TokenBucketRateLimiter."""

    def test_disabled_never_waits(self) -> None:
        """Should return immediately when the rate is 0."""
        limiter = TokenBucketRateLimiter(requests_per_minute=0)
        ctx = RunContext()

        start = time.monotonic()
        for _ in range(100):
            limiter.acquire(ctx)

        assert not limiter.enabled
        assert time.monotonic() - start < 1.0
        assert limiter.rate_limited_count == 0

    def test_burst_is_immediate(self) -> None:
        """Should let a full bucket through without waiting."""
        limiter = TokenBucketRateLimiter(requests_per_minute=60, burst=3)
        ctx = RunContext()

        for _ in range(3):
            limiter.acquire(ctx)

        assert limiter.rate_limited_count == 0

    def test_waits_when_empty(self) -> None:
        """Should wait for a token once the bucket is drained."""
        limiter = TokenBucketRateLimiter(requests_per_minute=600, burst=1)
        ctx = RunContext()

        limiter.acquire(ctx)
        start = time.monotonic()
        limiter.acquire(ctx)

        assert time.monotonic() - start >= 0.05
        assert limiter.rate_limited_count >= 1

    def test_cancellation_interrupts_wait(self) -> None:
        """Should raise CANCELLED when the run is cancelled while waiting."""
        limiter = TokenBucketRateLimiter(requests_per_minute=1, burst=1)
        ctx = RunContext()
        limiter.acquire(ctx)

        timer = threading.Timer(0.1, ctx.cancel)
        timer.start()
        start = time.monotonic()
        with pytest.raises(LlmError) as exc_info:
            limiter.acquire(ctx)
        timer.join()

        assert exc_info.value.category == ErrorCategory.CANCELLED
        assert time.monotonic() - start < 5.0

    def test_burst_floor_is_one(self) -> None:
        """Should never allow a bucket smaller than one token."""
        limiter = TokenBucketRateLimiter(requests_per_minute=60, burst=0)
        assert limiter.burst == 1.0
