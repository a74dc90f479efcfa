"""
Retry policy for remote calls.

Transient failures (network, timeout, throttling, 5xx) are retried a
bounded number of times with exponential backoff and full jitter.
Everything else fails fast.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from akv_tui.config.schema import RetryConfig
from akv_tui.remote.exceptions import RateLimitedError, classify_error, should_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry bound and backoff curve."""

    max_attempts: int = 3
    backoff_base: float = 0.5
    backoff_max: float = 8.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            backoff_base=config.backoff_base_seconds,
            backoff_max=config.backoff_max_seconds,
        )


class wait_retry_after(wait_base):
    """Wait at least as long as a throttling response asked for.

    Falls back to ``fallback`` for every other failure. The server hint
    is capped at ``cap`` seconds so a hostile header cannot freeze a
    worker.
    """

    def __init__(self, fallback: wait_base, cap: float):
        self.fallback = fallback
        self.cap = cap

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self.fallback(retry_state)
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            error = outcome.exception()
            if isinstance(error, RateLimitedError) and error.retry_after is not None:
                delay = max(delay, min(error.retry_after, self.cap))
        return delay


def is_transient(error: BaseException) -> bool:
    """Retry predicate: True for errors worth another attempt."""
    return should_retry(classify_error(error))


def build_retrying(
    policy: RetryPolicy,
    operation: str,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncRetrying:
    """
    Build a tenacity controller for one remote operation.

    Args:
        policy: Retry bound and backoff curve.
        operation: Operation name used in log records.
        sleep: Sleep coroutine (tests pass a recorder).

    Returns:
        An AsyncRetrying that re-raises the last error when exhausted.
    """

    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.info(
            f"{operation} failed ({classify_error(error).value if error else 'unknown'}), "
            f"attempt {retry_state.attempt_number}/{policy.max_attempts}, "
            f"retrying in {delay:.2f}s"
        )

    return AsyncRetrying(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_retry_after(
            wait_random_exponential(multiplier=policy.backoff_base, max=policy.backoff_max),
            cap=policy.backoff_max,
        ),
        sleep=sleep,
        before_sleep=before_sleep,
        reraise=True,
    )
