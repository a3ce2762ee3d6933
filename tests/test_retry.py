import pytest
from unittest.mock import AsyncMock

from support_rag_server.core.errors import (
    ConfigurationError,
    DataValidationError,
    ExternalServiceError,
    IndexNotFoundError,
    RateLimitError,
    is_retryable,
)
from support_rag_server.core.retry import NO_RETRY, RetryPolicy, retry


FAST = RetryPolicy(max_attempts=3, base_delay=0.0)


def test_retryable_classification():
    assert is_retryable(ExternalServiceError("exa", "boom"))
    assert is_retryable(RateLimitError("pinecone"))
    assert is_retryable(ExternalServiceError("exa", "timeout", upstream_status=408))
    assert is_retryable(ExternalServiceError("exa", "bad gateway", upstream_status=502))

    assert not is_retryable(ExternalServiceError("exa", "unauthorized", upstream_status=401))
    assert not is_retryable(ConfigurationError("missing key"))
    assert not is_retryable(DataValidationError("bad record"))
    assert not is_retryable(IndexNotFoundError("aven-support"))
    assert not is_retryable(ValueError("plain bug"))


def test_policy_delay_doubles_per_attempt():
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=10.0)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [2.0, 4.0, 8.0, 10.0]


async def test_retry_sleeps_with_doubling_backoff():
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    operation = AsyncMock(side_effect=[ExternalServiceError("exa", "1"), ExternalServiceError("exa", "2"), "ok"])
    policy = RetryPolicy(max_attempts=3, base_delay=1.0)

    assert await retry(operation, policy, sleep=record_sleep) == "ok"
    assert delays == [2.0, 4.0]


async def test_retry_backoff_is_capped():
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    operation = AsyncMock(side_effect=[ExternalServiceError("exa", str(i)) for i in range(4)])
    policy = RetryPolicy(max_attempts=4, base_delay=1.0, max_delay=5.0)

    with pytest.raises(ExternalServiceError):
        await retry(operation, policy, sleep=record_sleep)
    assert delays == [2.0, 4.0, 5.0]


def test_policy_rejects_invalid_values():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-1)


async def test_retry_returns_after_transient_failures():
    operation = AsyncMock(side_effect=[ExternalServiceError("exa", "1"), ExternalServiceError("exa", "2"), "ok"])

    assert await retry(operation, FAST) == "ok"
    assert operation.await_count == 3


async def test_retry_reraises_last_error_when_budget_spent():
    errors = [ExternalServiceError("exa", str(i)) for i in range(3)]
    operation = AsyncMock(side_effect=errors)

    with pytest.raises(ExternalServiceError) as exc_info:
        await retry(operation, FAST)

    assert exc_info.value is errors[-1]
    assert operation.await_count == 3


async def test_non_retryable_error_stops_immediately():
    operation = AsyncMock(side_effect=DataValidationError("bad"))

    with pytest.raises(DataValidationError):
        await retry(operation, FAST)
    assert operation.await_count == 1


async def test_no_retry_policy_runs_once():
    operation = AsyncMock(side_effect=ExternalServiceError("pinecone", "down"))

    with pytest.raises(ExternalServiceError):
        await retry(operation, NO_RETRY)
    assert operation.await_count == 1


async def test_custom_predicate():
    policy = RetryPolicy(max_attempts=2, base_delay=0.0, retryable=lambda e: isinstance(e, KeyError))
    operation = AsyncMock(side_effect=[KeyError("x"), 5])

    assert await retry(operation, policy, label="custom") == 5
