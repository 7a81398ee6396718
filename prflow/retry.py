"""Retry logic with exponential backoff for hosting-provider calls."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from prflow.errors import GitProviderError

if TYPE_CHECKING:
    from prflow.config import Config

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters.

    ``max_attempts`` counts every call, including the first one.
    """

    min_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 3
    jitter: bool = True

    def base_delay(self, retry_index: int) -> float:
        """Delay before retry number ``retry_index`` (0-based), without jitter."""
        return min(self.min_delay * (2 ** retry_index), self.max_delay)

    def delay_for(self, retry_index: int, rng: Callable[[], float] = random.random) -> float:
        """Delay before retry number ``retry_index`` including jitter.

        Jitter adds up to one extra base delay and the total never exceeds
        ``max_delay``.
        """
        delay = self.base_delay(retry_index)
        if self.jitter:
            delay += delay * rng()
        return min(delay, self.max_delay)


DEFAULT_POLICY = RetryPolicy()


def policy_from_config(config: "Config") -> RetryPolicy:
    """Build a RetryPolicy from the ``retry`` section of the config."""
    return RetryPolicy(
        min_delay=config.retry.min_delay,
        max_delay=config.retry.max_delay,
        max_attempts=config.retry.max_attempts,
        jitter=config.retry.jitter,
    )


def should_retry_provider_error(error: BaseException) -> bool:
    """Classification used for provider calls.

    Provider errors carry their own verdict; anything else that escapes a
    CLI call (OSError, timeouts) is treated as transient.
    """
    if isinstance(error, GitProviderError):
        return error.should_retry
    return isinstance(error, Exception)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[BaseException], bool] = should_retry_provider_error,
    policy: RetryPolicy = DEFAULT_POLICY,
    description: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds, fails permanently, or runs out of attempts.

    Attempts are strictly sequential. The last error is re-raised as-is so
    callers can still inspect its classification.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        should_retry: Predicate deciding whether an error is worth another attempt
        policy: Backoff parameters
        description: Used in log messages
        sleep: Awaitable sleep (injectable for tests)

    Returns:
        Result of the first successful attempt
    """
    attempt = 0
    while True:
        try:
            result = await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            attempt += 1
            if not should_retry(e):
                raise
            if attempt >= policy.max_attempts:
                logger.error(f"{description} failed after {attempt} attempts: {e}")
                raise

            delay = policy.delay_for(attempt - 1)
            logger.warning(f"{description} failed, retrying after {delay:.2f}s: {e}")
            await sleep(delay)
            continue

        if attempt > 0:
            logger.info(f"{description} succeeded on attempt {attempt + 1}")
        return result
