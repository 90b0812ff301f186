"""Bounded retry policy shared by the pipeline stages."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx

from src.helpers.constants import MAX_RETRIES, RETRY_DELAY
from src.helpers.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

type SleepFunc = Callable[[float], Awaitable[None]]
type BackoffFunc = Callable[[float, int], float]


def linear_backoff(base_delay: float, attempt: int) -> float:
    """Delay before the next attempt: base_delay * attempt (1-indexed)."""
    return base_delay * attempt


class RetryExhaustedError(Exception):
    """Raised when every attempt allowed by a RetryPolicy failed."""

    def __init__(self, operation: str, attempts: int, last_exception: Exception) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_exception}"
        )


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an async operation a bounded number of times.

    Attempts are 1-indexed. After failed attempt N (N < max_attempts) the
    policy sleeps for backoff(base_delay, N). Only Exception subclasses are
    retried; cancellation propagates immediately.

    Example:
        ```python
        from src.helpers.retry import RetryPolicy

        policy = RetryPolicy(max_attempts=3, base_delay=2.0)
        blocks = await policy.execute(lambda: extract(...), operation="extract")
        # Sleeps 2s after the first failure, 4s after the second
        ```
    """

    max_attempts: int = MAX_RETRIES
    base_delay: float = RETRY_DELAY
    backoff: BackoffFunc = linear_backoff
    sleep: SleepFunc = field(default=asyncio.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)
        if self.base_delay < 0:
            msg = "base_delay cannot be negative"
            raise ValueError(msg)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt."""
        return self.backoff(self.base_delay, attempt)

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        operation: str = "operation",
    ) -> T:
        """Run func until it succeeds or the attempt budget is spent.

        Args:
            func: Zero-argument coroutine factory, called once per attempt
            operation: Name used in log lines and the exhaustion error

        Returns:
            The first successful result

        Raises:
            RetryExhaustedError: If all attempts failed
        """
        last_exception: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func()
            except httpx.TimeoutException as e:
                last_exception = e
                if attempt < self.max_attempts:
                    logger.warning(
                        "%s timeout (attempt %d/%d)",
                        operation,
                        attempt,
                        self.max_attempts,
                    )
            except Exception as e:
                last_exception = e
                if attempt < self.max_attempts:
                    logger.warning(
                        "%s failed (attempt %d/%d): %s",
                        operation,
                        attempt,
                        self.max_attempts,
                        e,
                    )

            if attempt < self.max_attempts:
                await self.sleep(self.delay_for(attempt))

        if last_exception is None:
            msg = f"{operation} failed without exception"
            raise RuntimeError(msg)

        logger.error("%s failed after %d attempts", operation, self.max_attempts)
        raise RetryExhaustedError(operation, self.max_attempts, last_exception)


__all__ = [
    "RetryExhaustedError",
    "RetryPolicy",
    "SleepFunc",
    "linear_backoff",
]
