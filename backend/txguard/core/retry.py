"""
Retry utilities for calls to external risk providers.

Provides exponential backoff with jitter for transient transport failures.
Anything not listed as retryable propagates immediately.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import random
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RetryStrategy(str, Enum):
    """Retry strategy types."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIXED = "fixed"


class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts, including the first
        initial_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff
        jitter: Add random jitter to delays
        strategy: Retry strategy to use
        retryable_exceptions: Tuple of exceptions to retry on
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 0.5,
        max_delay: float = 5.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        strategy: RetryStrategy = RetryStrategy.EXPONENTIAL,
        retryable_exceptions: Tuple[Type[BaseException], ...] = (ConnectionError, TimeoutError)
    ):
        self.max_attempts = max(1, max_attempts)
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.strategy = strategy
        self.retryable_exceptions = retryable_exceptions

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for given attempt number.

        Args:
            attempt: Attempt number (0-based)

        Returns:
            Delay in seconds
        """
        if self.strategy == RetryStrategy.FIXED:
            delay = self.initial_delay
        elif self.strategy == RetryStrategy.LINEAR:
            delay = self.initial_delay * (attempt + 1)
        else:
            delay = self.initial_delay * (self.exponential_base ** attempt)

        delay = min(delay, self.max_delay)

        if self.jitter:
            delay = delay * (0.5 + random.random())

        return delay


async def call_with_retry(
    config: RetryConfig,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any
) -> Any:
    """
    Await ``func`` until it succeeds or the attempts are exhausted.

    Args:
        config: Retry configuration
        func: Coroutine function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of the first successful call

    Raises:
        The last retryable exception once attempts are exhausted, or any
        non-retryable exception immediately.
    """
    name = getattr(func, "__name__", repr(func))

    for attempt in range(config.max_attempts):
        try:
            return await func(*args, **kwargs)
        except config.retryable_exceptions as e:
            if attempt >= config.max_attempts - 1:
                logger.error(
                    f"Max retries ({config.max_attempts}) exceeded for {name}. "
                    f"Last error: {e}"
                )
                raise

            delay = config.calculate_delay(attempt)
            logger.warning(
                f"Retry {attempt + 1}/{config.max_attempts} for {name} "
                f"after {delay:.2f}s delay. Error: {e}"
            )
            await asyncio.sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover


def retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL,
    jitter: bool = True,
    retryable_exceptions: Optional[Tuple[Type[BaseException], ...]] = None
) -> Callable:
    """
    Decorator adding retry logic to a coroutine function.

    Args:
        max_attempts: Maximum attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        strategy: Retry strategy
        jitter: Whether to add jitter
        retryable_exceptions: Exceptions to retry on

    Returns:
        Decorated coroutine function
    """
    config = RetryConfig(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        strategy=strategy,
        jitter=jitter,
        retryable_exceptions=retryable_exceptions or (ConnectionError, TimeoutError)
    )

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await call_with_retry(config, func, *args, **kwargs)

        wrapper.retry_config = config  # type: ignore[attr-defined]
        return wrapper

    return decorator


__all__ = [
    "RetryStrategy",
    "RetryConfig",
    "call_with_retry",
    "retry",
]
