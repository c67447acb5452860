"""
RateLimiter — Token bucket rate limiter for model calls.

Narration, tactician and companion calls all share one bucket so a burst
of AI turns cannot exhaust the Gemini quota.
"""

import os
import time
import asyncio
import logging

logger = logging.getLogger('RateLimiter')


class RateLimiter:
    """Token bucket rate limiter.

    Allows up to `max_tokens` requests in a burst. Tokens refill at a
    steady rate. Callers `await limiter.acquire()` before each model call;
    it sleeps while the bucket is empty.

    Args:
        max_tokens: Maximum burst size (e.g., 15 for Gemini Flash free tier).
        refill_rate: Tokens added per second (e.g., 0.25 = 15 per minute).
        name: Label for logging.
    """

    def __init__(self, max_tokens: int = 15, refill_rate: float = 0.25, name: str = "default"):
        self.max_tokens = max_tokens
        self.refill_rate = refill_rate
        self.name = name
        self.tokens = float(max_tokens)
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self):
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self):
        """Wait until a token is available, then consume one."""
        async with self._lock:
            self._refill()

            if self.tokens < 1.0:
                wait_time = (1.0 - self.tokens) / self.refill_rate
                logger.warning(f"[{self.name}] Rate limit — waiting {wait_time:.1f}s")
                await asyncio.sleep(wait_time)
                self._refill()

            self.tokens -= 1.0

    @property
    def available(self) -> float:
        """Current number of available tokens (without consuming)."""
        self._refill()
        return self.tokens

    @classmethod
    def per_minute(cls, requests_per_minute: int, name: str) -> "RateLimiter":
        return cls(max_tokens=requests_per_minute, refill_rate=requests_per_minute / 60.0, name=name)


gemini_limiter = RateLimiter.per_minute(int(os.getenv("GEMINI_RPM", "15")), name="gemini")
