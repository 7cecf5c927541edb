"""
Exponential backoff for upstream calls that hit rate limits.

Only rate-limit failures are retried. The delay before the retry that follows
failed attempt n (1-based) is min(base_delay * 2**n, max_delay), so the
defaults wait 2s, then 4s, capped at 30s. Any other failure propagates on
first occurrence.

The wait is an asyncio sleep, so concurrent runs keep making progress while
one of them backs off.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception, stop_after_attempt

from shopbot.core.errors import RetriesExhausted, is_rate_limited
from shopbot.core.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays must be >= 0")

    def delay_ms(self, attempt: int) -> int:
        """Delay after failed attempt number `attempt` (1-based)."""
        return min(self.base_delay_ms * 2**attempt, self.max_delay_ms)


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    is_retryable: Callable[[BaseException], bool] = is_rate_limited,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await `operation()` until it succeeds, fails with a non-retryable error,
    or `policy.max_attempts` attempts have failed.

    Raises:
        RetriesExhausted: every attempt failed with a retryable error.
            The last failure is chained as __cause__.
    """

    def _wait(retry_state: RetryCallState) -> float:
        return policy.delay_ms(retry_state.attempt_number) / 1000

    def _before_sleep(retry_state: RetryCallState) -> None:
        log.warning(
            "rate_limit_retry",
            attempt=retry_state.attempt_number,
            max_attempts=policy.max_attempts,
            delay_s=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=_wait,
        retry=retry_if_exception(is_retryable),
        sleep=sleep,
        before_sleep=_before_sleep,
        reraise=False,
    )

    try:
        return await retrying(operation)
    except RetryError as exc:
        last = exc.last_attempt.exception()
        log.error("retries_exhausted", attempts=policy.max_attempts, error=str(last))
        raise RetriesExhausted(policy.max_attempts, last) from last
