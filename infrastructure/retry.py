# ============================================================================
# ASYNC RETRY
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Infrastructure - Bounded exponential backoff
# PURPOSE: Retry transient failures of awaitable operations
# CREATED: 19 SEP 2026
# ============================================================================
"""
Async retry with exponential backoff and proportional jitter.

Delay before attempt i+1 is base_delay * 2**(i-1), scaled by a random
factor in [1 - jitter, 1 + jitter] and capped at max_delay.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryError(Exception):
    """All attempts failed. The last exception is chained as __cause__."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


def backoff_delay(attempt: int, base_delay: float, max_delay: float, jitter: float) -> float:
    """Delay after the given (1-based) failed attempt."""
    delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
    if jitter:
        delay *= random.uniform(1.0 - jitter, 1.0 + jitter)
    return max(0.0, delay)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    base_delay: float,
    max_delay: float = 5.0,
    jitter: float = 0.5,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    operation: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await fn() up to ``attempts`` times.

    Exceptions outside ``retry_on`` propagate immediately.
    """
    last_exc: Optional[BaseException] = None
    for i in range(1, attempts + 1):
        try:
            return await fn()
        except retry_on as e:
            last_exc = e
            if i == attempts:
                break
            delay = backoff_delay(i, base_delay, max_delay, jitter)
            logger.warning(f"{operation} failed (attempt {i}/{attempts}), retrying in {delay:.3f}s: {e}")
            await sleep(delay)
    raise RetryError(f"{operation} failed after {attempts} attempts: {last_exc}", attempts) from last_exc


__all__ = ["RetryError", "backoff_delay", "retry_async"]
