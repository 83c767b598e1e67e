"""Retry helper for collaborator calls."""

import asyncio
from typing import Awaitable, Callable, TypeVar

from ..errors import CollaboratorUnavailable
from .logger import get_app_logger

T = TypeVar("T")


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    description: str = "collaborator call",
) -> T:
    """
    Await ``func()``, retrying with exponential backoff on CollaboratorUnavailable.

    ``func`` is re-invoked from scratch on each attempt, so any precondition it
    checks is re-evaluated after every backoff sleep.

    Args:
        func: Zero-argument coroutine factory
        attempts: Maximum number of attempts (at least one is made)
        base_delay: Delay before the second attempt, in seconds
        max_delay: Upper bound for a single backoff delay
        description: Label used in log lines

    Returns:
        Whatever ``func`` returns

    Raises:
        CollaboratorUnavailable: If the last attempt still failed
    """
    logger = get_app_logger()
    attempts = max(1, attempts)
    delay = base_delay

    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()
        except CollaboratorUnavailable as e:
            if attempt >= attempts:
                logger.error(f"{description} failed after {attempts} attempts: {e}")
                raise
            logger.warning(
                f"{description} unavailable (attempt {attempt}/{attempts}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            await asyncio.sleep(delay)
            delay = min(delay * 2, max_delay)
