"""
Retry helpers for transient storage and network failures.

The card store wraps every read and transition in ``with_retry`` so that a
momentarily locked SQLite file or a dropped Postgres connection does not
lose a scheduler tick or a user's grade.
"""

import asyncio
import logging
import random
from typing import Any, Callable, Optional, Sequence, Type

logger = logging.getLogger(__name__)

DEFAULT_RETRY_EXCEPTIONS: tuple = (
    ConnectionError,
    TimeoutError,
    OSError,
)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        linear: bool = False,
        jitter: bool = False,
        jitter_max: float = 0.5,
        exceptions: Sequence[Type[Exception]] = DEFAULT_RETRY_EXCEPTIONS,
        retry_if: Optional[Callable[[Exception], bool]] = None,
    ):
        """
        Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (including first try)
            base_delay: Initial delay between retries in seconds
            max_delay: Maximum delay between retries in seconds
            exponential_base: Base for exponential backoff (delay * base^attempt)
            linear: Use base_delay * attempt_number instead of exponential backoff
            jitter: Whether to add random jitter to delays
            jitter_max: Maximum jitter as fraction of delay (0.0 to 1.0)
            exceptions: Exception types that are candidates for retry
            retry_if: Optional predicate narrowing which caught exceptions retry
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.linear = linear
        self.jitter = jitter
        self.jitter_max = jitter_max
        self.exceptions = tuple(exceptions)
        self.retry_if = retry_if

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay after a failed attempt.

        Args:
            attempt: The attempt number (0-indexed)

        Returns:
            Delay in seconds with optional jitter
        """
        if self.linear:
            delay = self.base_delay * (attempt + 1)
        else:
            delay = self.base_delay * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            delay += delay * random.uniform(0, self.jitter_max)

        return delay

    def should_retry(self, exc: Exception) -> bool:
        if not isinstance(exc, self.exceptions):
            return False
        return self.retry_if is None or self.retry_if(exc)


async def with_retry(
    func: Callable[..., Any],
    *args: Any,
    config: Optional[RetryConfig] = None,
    operation: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """
    Execute an async function with retry logic.

    Usage:
        card = await with_retry(
            load_card,
            card_id,
            config=RetryConfig(max_attempts=3, base_delay=1.5, linear=True),
        )

    Args:
        func: Async function to call
        *args: Positional arguments for func
        config: Retry behavior (defaults to RetryConfig())
        operation: Name used in log lines (defaults to func.__name__)
        **kwargs: Keyword arguments for func

    Returns:
        Result of the function call
    """
    config = config or RetryConfig()
    name = operation or getattr(func, "__name__", "operation")

    for attempt in range(config.max_attempts):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not config.should_retry(e):
                raise
            if attempt >= config.max_attempts - 1:
                logger.error(
                    f"All {config.max_attempts} attempts failed for {name}: "
                    f"{type(e).__name__}: {e}"
                )
                raise
            delay = config.calculate_delay(attempt)
            logger.warning(
                f"Retry {attempt + 1}/{config.max_attempts} for {name}: "
                f"{type(e).__name__}: {e}. Waiting {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"Retry failed unexpectedly for {name}")
