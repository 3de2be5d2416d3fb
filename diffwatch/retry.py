# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    retry.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# retry.py
'''
Exponential backoff around a single remote call.

Only RemoteError and DecodeError are retried. Every policy is bounded both
in attempts and in elapsed time, so a failing remote can never stall a
sync cycle forever.
'''

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from diffwatch.errors import DecodeError, RemoteError, RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    max_attempts: int = 4  # including the first call
    max_elapsed: float = 300.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if not (self.max_elapsed > 0 and math.isfinite(self.max_elapsed)):
            raise ValueError(f"max_elapsed must be finite and positive, got {self.max_elapsed}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {self.multiplier}")

    def delay(self, retry_number: int) -> float:
        """Sleep before retry `retry_number` (1-based)."""
        return min(self.base_delay * self.multiplier ** (retry_number - 1), self.max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    context: str = "remote call",
) -> T:
    """
    Awaits operation() until it succeeds or the policy is spent.

    Args:
        operation: zero-argument coroutine function, called once per attempt.
        policy: backoff parameters and limits.
        context: short description used in log lines and in RetryExhausted.

    Raises:
        RetryExhausted: chained from the last RemoteError/DecodeError.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    attempt = 0
    last_error: Optional[Exception] = None

    while True:
        attempt += 1
        try:
            return await operation()
        except (RemoteError, DecodeError) as e:
            last_error = e

        if attempt >= policy.max_attempts:
            break

        delay = policy.delay(attempt)
        if loop.time() - started + delay > policy.max_elapsed:
            logger.warning(f"{context}: next retry would exceed {policy.max_elapsed}s budget.")
            break

        logger.warning(f"{context}: attempt {attempt}/{policy.max_attempts} failed ({last_error}). Retrying in {delay:.2f}s.")
        await asyncio.sleep(delay)

    logger.error(f"{context}: giving up after {attempt} attempt(s). Last error: {last_error}")
    raise RetryExhausted(context, attempt, last_error) from last_error
