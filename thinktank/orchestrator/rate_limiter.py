"""Token-bucket rate limiter for provider requests."""

import threading
import time
from dataclasses import dataclass, field
from typing import Protocol

from thinktank.context import RunContext


class RateLimiterProtocol(Protocol):
    """Protocol for rate limiters.

    Allows dependency injection of a rate limiter for testing.
    """

    def acquire(self, ctx: RunContext) -> None:
        """Block until a request may start.

        Raises:
            LlmError: With category CANCELLED if the run is cancelled
                while waiting.
        """
        ...


@dataclass
class TokenBucketRateLimiter:
    """Token bucket limiting how many requests start per minute.

    Tokens are replenished continuously. The bucket starts full, so up to
    ``burst`` requests may start immediately. A rate of 0 disables limiting.

    Attributes:
        requests_per_minute: Sustained request rate.
        burst: Bucket capacity, defaults to one token per concurrent slot.
    """

    requests_per_minute: int
    burst: float = 1.0

    _tokens: float = field(init=False, default=0.0)
    _last_refill: float = field(init=False, default=0.0)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _rate_limited_count: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        """Initialize the bucket state."""
        self.burst = max(self.burst, 1.0)
        self._tokens = self.burst
        self._last_refill = time.monotonic()

    @property
    def enabled(self) -> bool:
        """Whether any limit applies."""
        return self.requests_per_minute > 0

    def _refill(self) -> None:
        """Refill tokens based on elapsed time.

        Must be called while holding the lock.
        """
        now = time.monotonic()
        rate_per_second = self.requests_per_minute / 60.0
        self._tokens = min(
            self.burst, self._tokens + (now - self._last_refill) * rate_per_second
        )
        self._last_refill = now

    def acquire(self, ctx: RunContext) -> None:
        """Take one token, waiting for replenishment when the bucket is empty."""
        if not self.enabled:
            ctx.raise_if_cancelled()
            return
        while True:
            ctx.raise_if_cancelled()
            with self._lock:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                wait_time = (1.0 - self._tokens) / (self.requests_per_minute / 60.0)
                self._rate_limited_count += 1

            # Release lock before sleeping; wake early on cancellation
            ctx.wait(wait_time)

    @property
    def rate_limited_count(self) -> int:
        """Number of times a caller had to wait."""
        with self._lock:
            return self._rate_limited_count
