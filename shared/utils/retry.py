"""Retry with exponential backoff for outbound calls"""
import asyncio
import inspect
import logging
from typing import Callable, Any, Type, Tuple

logger = logging.getLogger(__name__)


async def retry_with_backoff(
    func: Callable,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
) -> Any:
    """
    Run func, retrying on the given exceptions with exponential backoff

    Args:
        func: Zero-argument callable; an awaitable result is awaited
        max_retries: Retries after the first attempt; 0 disables retrying
        initial_delay: First delay in seconds
        max_delay: Upper bound for a single delay
        exponential_base: Delay multiplier between attempts
        exceptions: Exceptions that trigger a retry; anything else propagates at once

    Returns:
        Result of func
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            result = func()
            if inspect.isawaitable(result):
                result = await result
            return result
        except exceptions as e:
            if attempt == max_retries:
                raise
            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed: {type(e).__name__}: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)
