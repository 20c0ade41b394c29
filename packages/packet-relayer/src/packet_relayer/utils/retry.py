"""
Backoff helper for transient dependency errors.

Only TransientDependencyError is retried; any other exception propagates on
the first occurrence.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from ..errors import TransientDependencyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    description: str = "operation",
) -> T:
    """
    Await ``operation()`` until it succeeds or retries run out.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        retries: Retries after the first attempt
        base_delay: Delay before the first retry, doubled on each further retry
        max_delay: Upper bound for a single delay
        description: Used in log messages

    Raises:
        TransientDependencyError: The last error once retries are exhausted
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except TransientDependencyError as e:
            if attempt >= retries:
                logger.error(f"{description} failed after {attempt + 1} attempts: {e}")
                raise
            delay = min(base_delay * (2 ** attempt), max_delay)
            attempt += 1
            logger.warning(
                f"{description} failed (attempt {attempt}/{retries + 1}): {e}; "
                f"retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)
