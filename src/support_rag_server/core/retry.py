"""
Retry Combinator

A retry policy is a plain value: how many attempts, how long to back off, and
which errors are worth another try. `retry()` applies a policy to any async
operation using tenacity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

from .errors import is_retryable

logger = logging.getLogger("support.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Parameters
    ----------
    max_attempts : int
        Total attempts including the first one. 1 disables retrying.

    base_delay : float
        Seconds. The delay after failed attempt n is base_delay * 2**n,
        so base_delay=1 gives 2s, 4s, 8s...

    max_delay : float
        Upper bound for a single delay.

    retryable : Callable[[BaseException], bool]
        Predicate deciding whether an error is retried.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    retryable: Callable[[BaseException], bool] = field(default=is_retryable)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)


NO_RETRY = RetryPolicy(max_attempts=1, base_delay=0.0)


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: Optional[str] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Run `operation` until it succeeds, the policy gives up, or it raises a
    non-retryable error. The last underlying error is re-raised unchanged.

    Delays come from `policy.delay_for`; `sleep` replaces the default
    asyncio sleep.
    """
    log = logging.getLogger(f"support.retry.{label}") if label else logger

    kwargs = {"sleep": sleep} if sleep is not None else {}
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=lambda state: policy.delay_for(state.attempt_number),
        retry=retry_if_exception(policy.retryable),
        before_sleep=before_sleep_log(log, logging.WARNING),
        reraise=True,
        **kwargs,
    )
    return await retrying(operation)
