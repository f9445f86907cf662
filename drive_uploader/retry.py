"""
Module for retrying asynchronous operations with exponential backoff.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from .errors import is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0
JITTER_RATIO = 0.3


class wait_exponential_capped_jitter(wait_base):
    """Wait ``initial * 2**k`` plus up to 30% positive jitter, capped at max_delay.

    ``k`` is the 0-indexed number of the attempt that just failed.
    """

    def __init__(self, initial: float = DEFAULT_INITIAL_DELAY,
                 maximum: float = DEFAULT_MAX_DELAY,
                 jitter_ratio: float = JITTER_RATIO):
        self.initial = initial
        self.maximum = maximum
        self.jitter_ratio = jitter_ratio

    def delay_for(self, attempt: int) -> float:
        delay = self.initial * (2 ** attempt)
        jitter = random.uniform(0, self.jitter_ratio * delay)
        return min(delay + jitter, self.maximum)

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.delay_for(retry_state.attempt_number - 1)


class RetryPolicy:
    """Runs an async operation, retrying transient failures."""

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES,
                 initial_delay: float = DEFAULT_INITIAL_DELAY,
                 max_delay: float = DEFAULT_MAX_DELAY,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """Initialize the retry policy.

        Args:
            max_retries: Additional attempts allowed after the first failure
            initial_delay: Delay in seconds before the first retry
            max_delay: Upper bound in seconds for any single delay
            sleep: Coroutine used to wait between attempts
        """
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.max_retries = max_retries
        self.wait = wait_exponential_capped_jitter(initial_delay, max_delay)
        self._sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self.wait,
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

    async def run(self, operation: Callable[[], Awaitable[T]],
                  description: str = "operation") -> T:
        """Run operation until it succeeds, fails fatally or retries run out.

        Args:
            operation: Zero-argument callable returning an awaitable
            description: Label used in log messages

        Returns:
            The operation's result

        Raises:
            The last error raised by operation, unchanged
        """
        # AsyncRetrying only awaits coroutine functions, not lambdas returning coroutines
        async def attempt() -> T:
            return await operation()

        try:
            return await self._retrying()(attempt)
        except Exception as e:
            logger.error(f"Giving up on {description}: {e}")
            raise
