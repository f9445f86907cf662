"""
Tests for the retry policy and error classification.
"""
import httpx
import pytest
from unittest.mock import AsyncMock

from drive_uploader.errors import (
    AuthError,
    HttpError,
    NetworkError,
    SessionError,
    ValidationError,
    is_retryable_error,
)
from drive_uploader.retry import RetryPolicy, wait_exponential_capped_jitter


@pytest.mark.asyncio
async def test_retries_503_then_succeeds(retry_policy, sleeps):
    """Test that an operation failing max_retries times with 503 still succeeds."""
    operation = AsyncMock(side_effect=[
        HttpError(503, "Service Unavailable"),
        HttpError(503, "Service Unavailable"),
        HttpError(503, "Service Unavailable"),
        "done",
    ])

    result = await retry_policy.run(operation)

    assert result == "done"
    assert operation.call_count == 4
    assert len(sleeps) == 3


@pytest.mark.asyncio
async def test_lambda_returning_coroutine_is_awaited(retry_policy, sleeps):
    """Test that a plain callable returning a coroutine is awaited and retried."""
    calls = []

    async def create_session():
        calls.append(1)
        if len(calls) == 1:
            raise HttpError(503, "Service Unavailable")
        return "session"

    result = await retry_policy.run(lambda: create_session())

    assert result == "session"
    assert len(calls) == 2
    assert len(sleeps) == 1


@pytest.mark.asyncio
async def test_client_error_not_retried(retry_policy, sleeps):
    """Test that a 400 fails immediately."""
    error = HttpError(400, "Bad Request")
    operation = AsyncMock(side_effect=error)

    with pytest.raises(HttpError) as exc_info:
        await retry_policy.run(operation)

    assert exc_info.value is error
    assert operation.call_count == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_last_error_propagated_after_exhaustion(retry_policy, sleeps):
    errors = [NetworkError(f"connection dropped {i}") for i in range(4)]
    operation = AsyncMock(side_effect=errors)

    with pytest.raises(NetworkError) as exc_info:
        await retry_policy.run(operation)

    assert exc_info.value is errors[-1]
    assert operation.call_count == 4
    assert len(sleeps) == 3


@pytest.mark.asyncio
async def test_session_error_is_fatal(retry_policy):
    operation = AsyncMock(side_effect=SessionError("expired"))

    with pytest.raises(SessionError):
        await retry_policy.run(operation)

    assert operation.call_count == 1


@pytest.mark.asyncio
async def test_zero_retries_runs_once(sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    policy = RetryPolicy(max_retries=0, sleep=fake_sleep)
    operation = AsyncMock(side_effect=HttpError(500, "Internal Server Error"))

    with pytest.raises(HttpError):
        await policy.run(operation)

    assert operation.call_count == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_sleeps_follow_exponential_backoff(retry_policy, sleeps):
    operation = AsyncMock(side_effect=[HttpError(429, "Too Many Requests")] * 3 + ["ok"])

    await retry_policy.run(operation)

    for k, delay in enumerate(sleeps):
        assert 2 ** k <= delay <= 2 ** k * 1.3


def test_backoff_delay_bounds():
    """Test that every delay lies between the base delay and the cap."""
    wait = wait_exponential_capped_jitter(initial=1.0, maximum=30.0)
    for _ in range(50):
        for k in range(8):
            delay = wait.delay_for(k)
            assert delay <= 30.0
            assert delay >= min(1.0 * 2 ** k, 30.0)
            assert delay <= 1.0 * 2 ** k * 1.3


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)


@pytest.mark.parametrize("error", [
    NetworkError("no route"),
    httpx.ConnectError("refused"),
    httpx.ReadTimeout("slow"),
    RuntimeError("fetch failed"),
    RuntimeError("Connection reset by peer"),
    RuntimeError("read ECONNRESET"),
    RuntimeError("operation timed out"),
    HttpError(429, "Too Many Requests"),
    HttpError(500, "Internal Server Error"),
    HttpError(502, "Bad Gateway"),
    HttpError(503, "Service Unavailable"),
    HttpError(504, "Gateway Timeout"),
    RuntimeError("Failed to upload chunk: 503 Service Unavailable"),
])
def test_retryable_errors(error):
    assert is_retryable_error(error)


@pytest.mark.parametrize("error", [
    HttpError(400, "Bad Request"),
    HttpError(401, "Unauthorized"),
    HttpError(404, "Not Found"),
    RuntimeError("Failed to upload chunk: 403 Forbidden"),
    ValueError("something else"),
    ValidationError("bad chunk size"),
    SessionError("expired session"),
    AuthError("bad secret"),
])
def test_fatal_errors(error):
    assert not is_retryable_error(error)
