"""
Bounded retry with optional exponential backoff.

RetryPolicy describes how many attempts to make and how long to wait
between them; attempt_with_retry() applies a policy to any coroutine
factory. Used by the e-mail notifier, kept generic so other I/O can
reuse it.

Formula: delay_for(attempt) = min(delay * (backoff ^ attempt), max_delay)
"""

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import RetryExhaustedError

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """
    Immutable retry configuration.

    A backoff of 1.0 gives a fixed delay; 2.0 doubles the delay after every
    failed attempt, capped at max_delay.

    Attributes:
        max_attempts: Total number of attempts, including the first
        delay: Delay in seconds after the first failure
        backoff: Multiplier applied to the delay after each failure
        max_delay: Upper bound for any single delay

    Examples:
        >>> policy = RetryPolicy(max_attempts=5, delay=1.0, backoff=2.0)
        >>> [policy.delay_for(n) for n in range(4)]
        [1.0, 2.0, 4.0, 8.0]
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Total attempts")
    delay: float = Field(default=1.0, ge=0, description="Base delay in seconds")
    backoff: float = Field(default=1.0, ge=1, description="Delay multiplier")
    max_delay: float = Field(default=60.0, ge=0, description="Delay cap in seconds")

    def delay_for(self, attempt: int) -> float:
        """
        Delay to wait after the given failed attempt (0-indexed).

        Args:
            attempt (int): Index of the attempt that just failed

        Returns:
            float: Seconds to sleep, capped at max_delay
        """
        return min(self.delay * (self.backoff ** attempt), self.max_delay)


async def attempt_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Await operation() until it succeeds or the policy is exhausted.

    operation is a zero-argument factory so that each attempt gets a fresh
    coroutine. Exceptions outside retry_on propagate immediately. There is
    no sleep after the final attempt.

    Args:
        operation: Callable returning a new awaitable per attempt
        policy: Attempts and delays to apply
        description: Human-readable name used in log messages
        retry_on: Exception types that trigger another attempt

    Returns:
        The value returned by the first successful attempt

    Raises:
        RetryExhaustedError: If every attempt failed. The last error is
            chained and available as ``last_error``.

    Examples:
        >>> await attempt_with_retry(lambda: send_email(msg), RetryPolicy(),
        ...                          description="email notification")
    """
    last_error: BaseException = None

    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except retry_on as e:
            last_error = e

            if attempt >= policy.max_attempts - 1:
                break

            delay = policy.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{policy.max_attempts} of {description} failed: {e}. "
                f"Retrying after {delay}s..."
            )
            await asyncio.sleep(delay)

    logger.error(
        f"Max attempts ({policy.max_attempts}) exhausted for {description}. "
        f"Last error: {last_error}"
    )
    raise RetryExhaustedError(
        f"{description} failed after {policy.max_attempts} attempt(s): {last_error}",
        attempts=policy.max_attempts,
        last_error=last_error,
    ) from last_error
