"""Tests for the circuit breaker state machine."""

from unittest.mock import AsyncMock

import pytest

from vibetrip.app.exceptions import CircuitOpenError
from vibetrip.app.providers.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOptions,
    CircuitState,
)


async def _fail():
    raise RuntimeError("remote down")


async def _ok():
    return "ok"


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(
        CircuitBreakerOptions(name="Test API", failure_threshold=3, success_threshold=2, timeout=30),
        clock=clock,
    )


async def _trip(breaker, times):
    for _ in range(times):
        with pytest.raises(RuntimeError):
            await breaker.execute(_fail)


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_starts_closed_and_passes_results_through(self, breaker):
        assert breaker.state is CircuitState.CLOSED
        assert await breaker.execute(_ok) == "ok"

    @pytest.mark.asyncio
    async def test_opens_after_threshold_failures(self, breaker):
        await _trip(breaker, 2)
        assert breaker.state is CircuitState.CLOSED

        await _trip(breaker, 1)
        assert breaker.state is CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        await _trip(breaker, 2)
        await breaker.execute(_ok)
        await _trip(breaker, 2)

        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_open_circuit_does_not_invoke_operation(self, breaker):
        await _trip(breaker, 3)
        operation = AsyncMock(return_value="never")

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.execute(operation)

        operation.assert_not_called()
        assert exc_info.value.status_code == 503
        assert "Circuit breaker [Test API] is OPEN" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_half_open_after_timeout(self, breaker, clock):
        await _trip(breaker, 3)
        clock.advance(30)

        assert await breaker.execute(_ok) == "ok"
        assert breaker.state is CircuitState.HALF_OPEN

        await breaker.execute(_ok)
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_single_failure_in_half_open_reopens(self, breaker, clock):
        await _trip(breaker, 3)
        clock.advance(31)

        await _trip(breaker, 1)

        assert breaker.state is CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            await breaker.execute(_ok)

    @pytest.mark.asyncio
    async def test_stats_and_reset(self, breaker):
        await breaker.execute(_ok)
        await _trip(breaker, 3)

        stats = breaker.get_stats()
        assert stats["state"] == "OPEN"
        assert stats["total_requests"] == 4
        assert stats["total_failures"] == 3
        assert stats["total_successes"] == 1
        assert stats["last_failure_time"] is not None

        breaker.reset()
        assert breaker.state is CircuitState.CLOSED
        assert breaker.get_stats()["total_requests"] == 0
        assert await breaker.execute(_ok) == "ok"


def test_options_validate_thresholds():
    with pytest.raises(ValueError):
        CircuitBreakerOptions(name="x", failure_threshold=0)
    with pytest.raises(ValueError):
        CircuitBreakerOptions(name="x", timeout=0)
