"""Bounded retry with exponential backoff for idempotent reads."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)


def retry(
    max_attempts: int = 3,
    backoff_seconds: float = 0.5,
    retry_on: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """
    Decorator for retrying failed operations with exponential backoff.

    Only wrap operations that are safe to repeat. Charge and refund creation
    must rely on processor idempotency keys instead.

    Args:
        max_attempts: Maximum number of attempts, including the first
        backoff_seconds: Initial backoff time in seconds
        retry_on: Exception types that trigger another attempt

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    if attempt >= max_attempts - 1:
                        logger.error(
                            f"All {max_attempts} attempts failed for {func.__name__}: {str(e)}"
                        )
                        raise
                    wait_time = backoff_seconds * (2**attempt)
                    logger.warning(
                        f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: {str(e)}. "
                        f"Retrying in {wait_time}s..."
                    )
                    await asyncio.sleep(wait_time)
            raise RuntimeError("Retry failed without capturing exception")

        return wrapper

    return decorator
