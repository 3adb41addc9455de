"""Outbound request budget and retry policy for AI gateway calls.

One sliding-window limiter is shared by every gateway in the process
(`get_shared_rate_limiter`), so all agents draw from the same per-minute
budget. `retry_with_backoff` wraps a single call: it acquires the limiter
before each attempt and retries only rate-limit errors.
"""

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, TypeVar

from ...config import settings
from .errors import RetryExhaustedError, is_rate_limit_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


class SlidingWindowRateLimiter:
    """Admit at most `max_requests` calls in any `window_seconds` window.

    When the window is full, `acquire` sleeps until the oldest timestamp
    leaves it, re-checks, and only then records the new call.
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: float = 60.0,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.max_requests = max_requests or settings.AI_MAX_REQUESTS_PER_MINUTE
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: Deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    async def acquire(self) -> float:
        """Wait for a free slot and claim it. Returns seconds spent waiting."""
        waited = 0.0
        while True:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) < self.max_requests:
                self._timestamps.append(now)
                return waited

            wait = self.window_seconds - (now - self._timestamps[0])
            logger.info(f"[RateLimit] Window full ({self.max_requests} req), waiting {wait:.2f}s")
            await self._sleep(wait)
            waited += wait

    def status(self) -> Dict[str, Any]:
        """Current budget usage, in the shape the API reports it."""
        self._prune(self._clock())
        used = len(self._timestamps)
        return {
            "minute_remaining": max(self.max_requests - used, 0),
            "minute_limit": self.max_requests,
            "requests_in_window": used,
            "window_seconds": self.window_seconds,
        }

    def reset(self) -> None:
        self._timestamps.clear()


@dataclass
class BackoffPolicy:
    """Exponential backoff with additive jitter.

    `max_retries` counts retries, so a call is attempted at most
    ``max_retries + 1`` times.
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 32.0
    max_jitter: float = 1.0

    @classmethod
    def from_settings(cls) -> "BackoffPolicy":
        return cls(
            max_retries=settings.AI_MAX_RETRIES,
            initial_delay=settings.AI_BACKOFF_INITIAL_DELAY,
            factor=settings.AI_BACKOFF_FACTOR,
            max_delay=settings.AI_BACKOFF_MAX_DELAY,
            max_jitter=settings.AI_BACKOFF_MAX_JITTER,
        )

    def base_delay(self, retry: int) -> float:
        """Delay before the `retry`-th retry (1-based), without jitter."""
        return min(self.initial_delay * self.factor ** (retry - 1), self.max_delay)

    def delay(self, retry: int, rng: Callable[[float, float], float] = random.uniform) -> float:
        return self.base_delay(retry) + rng(0, self.max_jitter)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[BackoffPolicy] = None,
    limiter: Optional[SlidingWindowRateLimiter] = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run `operation`, retrying rate-limit failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Backoff policy (defaults to the configured one)
        limiter: Limiter acquired before every attempt (defaults to the shared one)
        sleep: Sleep used between retries

    Returns:
        The operation's result

    Raises:
        RetryExhaustedError: if every attempt hit a rate limit
        Exception: any non rate-limit error, unchanged and without retrying
    """
    policy = policy or BackoffPolicy.from_settings()
    limiter = limiter or get_shared_rate_limiter()

    retry = 0
    while True:
        await limiter.acquire()
        try:
            return await operation()
        except Exception as e:
            if not is_rate_limit_error(e):
                raise
            if retry >= policy.max_retries:
                logger.error(f"[RateLimit] Retries exhausted after {retry + 1} attempts")
                raise RetryExhaustedError(retry + 1, e) from e
            retry += 1
            delay = policy.delay(retry)
            logger.warning(f"[RateLimit] 429 from gateway, retry {retry}/{policy.max_retries} in {delay:.2f}s")
            await sleep(delay)


# Global limiter instance
_shared_limiter: Optional[SlidingWindowRateLimiter] = None


def get_shared_rate_limiter() -> SlidingWindowRateLimiter:
    """Get or create the process-wide limiter."""
    global _shared_limiter
    if _shared_limiter is None:
        _shared_limiter = SlidingWindowRateLimiter()
    return _shared_limiter


def get_rate_limit_status() -> Dict[str, Any]:
    """Get current rate limit status."""
    return get_shared_rate_limiter().status()
