"""
Retry — bounded exponential backoff for external model calls.

Only transient failures are retried: timeouts, connection resets and
rate-limit / 503 style responses. Anything else (malformed output,
validation errors, programming errors) is re-raised immediately.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger("Retry")

T = TypeVar("T")

TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "fetch failed",
    "econnreset",
    "connection reset",
    "service unavailable",
    "overloaded",
    "resource has been exhausted",
    "resource_exhausted",
    "too many requests",
    "429",
    "503",
)

TRANSIENT_STATUS_CODES = {429, 503}


class RetryExhaustedError(Exception):
    """A transient failure persisted through every attempt.

    Recoverable from the player's point of view: the turn can be retried.
    """

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None, attempts: int = 0):
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts


def _status_code(error: BaseException) -> Optional[int]:
    for attr in ("status", "status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_retryable_error(error: BaseException) -> bool:
    """True for timeouts, connection resets, 429/503 and overload errors."""
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if _status_code(error) in TRANSIENT_STATUS_CODES:
        return True
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    label: str = "call",
) -> T:
    """Await `fn()` with up to `max_retries` retries (delay doubles each time).

    Args:
        fn: Zero-argument coroutine factory. Called once per attempt.
        max_retries: Retries after the first attempt.
        initial_delay: Seconds before the first retry.
        label: Name used in log lines.

    Raises:
        RetryExhaustedError: transient failure on every attempt.
        Exception: the original error, for non-transient failures.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(max_retries + 1):
        try:
            return await fn()
        except Exception as e:
            if not is_retryable_error(e):
                raise
            last_error = e
            if attempt == max_retries:
                break
            delay = initial_delay * (2 ** attempt)
            logger.warning(
                f"[{label}] transient failure (attempt {attempt + 1}/{max_retries + 1}): {e} — retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)

    code = _status_code(last_error) if last_error else None
    code_str = f" ({code})" if code is not None else ""
    logger.error(f"[{label}] giving up after {max_retries + 1} attempts: {last_error}")
    raise RetryExhaustedError(
        f"API call failed: {last_error}{code_str}",
        status_code=code,
        attempts=max_retries + 1,
    ) from last_error
