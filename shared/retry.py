"""
Retry policy for remote calls that can fail transiently.
"""

import asyncio
import functools
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger

RetryPredicate = Callable[[BaseException], bool]
DelayHint = Callable[[BaseException], Optional[float]]


class RetryConfig:
    """Exponential backoff settings."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        delay = min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += random.uniform(-0.1 * delay, 0.1 * delay)
        return max(0.0, delay)


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""
    def __init__(self, message: str, last_exception: BaseException, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def retry_on_exception(exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                       config: Optional[RetryConfig] = None,
                       *,
                       retry_if: Optional[RetryPredicate] = None,
                       delay_hint: Optional[DelayHint] = None) -> Callable:
    """Retry an async function when it raises one of ``exceptions``.

    ``retry_if`` narrows which of those errors are retried; the rest propagate
    unchanged on the first attempt. ``delay_hint`` lets a failure name its own
    wait, such as a server's Retry-After, in place of the backoff. Hinted waits
    are capped at ``config.max_delay``.

    When attempts run out, ``RetryError`` is raised with the last failure.
    """
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        logger = get_logger(f"retry.{func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if retry_if is not None and not retry_if(e):
                        raise
                    if attempt >= config.max_attempts:
                        logger.error(
                            "All retry attempts exhausted",
                            attempts=attempt,
                            function=func.__name__,
                            error=str(e)
                        )
                        raise RetryError(
                            f"Function {func.__name__} failed after {attempt} attempts",
                            last_exception=e,
                            attempts=attempt
                        )

                    delay = _next_delay(attempt, e, config, delay_hint)
                    logger.warning(
                        "Attempt failed, retrying",
                        attempt=attempt,
                        delay=delay,
                        function=func.__name__,
                        error=str(e)
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator


def _next_delay(attempt: int, error: BaseException, config: RetryConfig,
                delay_hint: Optional[DelayHint]) -> float:
    hinted = delay_hint(error) if delay_hint is not None else None
    if hinted is not None:
        return min(max(0.0, hinted), config.max_delay)
    return config.backoff(attempt)
