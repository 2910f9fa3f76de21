"""Tests for the retry executor with timeout and exponential backoff."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from vibetrip.app.exceptions import (
    CircuitOpenError,
    ConfigurationError,
    OperationTimeoutError,
    RemoteModelError,
    RetryExhaustedError,
    TransientRemoteError,
    ValidationError,
)
from vibetrip.app.providers.retry import RetryPolicy, run_with_retry


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class TestRetryPolicy:
    def test_default_values(self):
        policy = RetryPolicy()

        assert policy.max_retries == 2
        assert policy.base_delay == 1.0
        assert policy.jitter == 0.0

    def test_calculate_delay_doubles(self):
        policy = RetryPolicy(base_delay=1.0)

        assert policy.calculate_delay(1) == 1.0
        assert policy.calculate_delay(2) == 2.0
        assert policy.calculate_delay(3) == 4.0

    def test_jitter_stretches_delay_within_bound(self):
        policy = RetryPolicy(base_delay=1.0, jitter=0.5)

        for _ in range(20):
            assert 2.0 <= policy.calculate_delay(2) <= 3.0

    @pytest.mark.parametrize(
        "error, expected",
        [
            (TransientRemoteError("network"), True),
            (RemoteModelError(503, "overloaded"), True),
            (RemoteModelError(429, "quota"), True),
            (RemoteModelError(400, "bad request"), False),
            (CircuitOpenError("Gemini API"), False),
            (ConfigurationError("no key"), False),
            (ValidationError("bad"), False),
            (ValueError("malformed json"), True),
        ],
    )
    def test_is_retryable(self, error, expected):
        assert RetryPolicy().is_retryable(error) is expected


class TestRunWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success_without_sleeping(self):
        sleep = RecordingSleep()
        fn = AsyncMock(return_value="ok")

        assert await run_with_retry("Op", fn, sleep=sleep) == "ok"
        assert fn.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        sleep = RecordingSleep()
        fn = AsyncMock(side_effect=[TransientRemoteError("blip"), "ok"])

        assert await run_with_retry("Op", fn, sleep=sleep) == "ok"
        assert fn.await_count == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_exhaustion_makes_max_retries_plus_one_attempts(self):
        sleep = RecordingSleep()
        fn = AsyncMock(side_effect=TransientRemoteError("down"))

        with pytest.raises(RetryExhaustedError) as exc_info:
            await run_with_retry("IntentParser", fn, max_retries=2, sleep=sleep)

        assert fn.await_count == 3
        assert sleep.delays == [1.0, 2.0]
        error = exc_info.value
        assert "IntentParser" in error.message
        assert "down" in error.message
        assert isinstance(error.last_error, TransientRemoteError)
        assert error.__cause__ is error.last_error

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self):
        fn = AsyncMock(side_effect=TransientRemoteError("down"))

        with pytest.raises(RetryExhaustedError):
            await run_with_retry("Op", fn, max_retries=0, sleep=RecordingSleep())

        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_negative_max_retries_is_rejected(self):
        fn = AsyncMock(return_value="ok")

        with pytest.raises(ValueError):
            await run_with_retry("Op", fn, max_retries=-1, sleep=RecordingSleep())

        fn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_unchanged(self):
        sleep = RecordingSleep()
        error = CircuitOpenError("Gemini API")
        fn = AsyncMock(side_effect=error)

        with pytest.raises(CircuitOpenError) as exc_info:
            await run_with_retry("Op", fn, sleep=sleep)

        assert exc_info.value is error
        assert fn.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_client_error_from_remote_is_not_retried(self):
        fn = AsyncMock(side_effect=RemoteModelError(400, "Invalid argument"))

        with pytest.raises(RemoteModelError):
            await run_with_retry("Op", fn, sleep=RecordingSleep())

        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_retried(self):
        calls = 0

        async def slow_then_fast():
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(1.0)
            return "fast"

        result = await run_with_retry(
            "Op", slow_then_fast, timeout=0.05, sleep=RecordingSleep()
        )

        assert result == "fast"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_timeout_message_names_operation(self):
        async def never():
            await asyncio.sleep(1.0)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await run_with_retry("DiscoveryAgent", never, max_retries=0, timeout=0.02)

        last = exc_info.value.last_error
        assert isinstance(last, OperationTimeoutError)
        assert last.message == "DiscoveryAgent timed out after 20ms"
