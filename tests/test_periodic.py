"""Tests for background periodic tasks."""

import asyncio

import pytest

from vibetrip.app.core.periodic import PeriodicTask


class TestPeriodicTask:
    @pytest.mark.asyncio
    async def test_runs_callback_on_interval(self):
        calls = 0

        async def sweep():
            nonlocal calls
            calls += 1

        task = PeriodicTask("test", 0.01, sweep)
        await task.start()
        await asyncio.sleep(0.1)
        await task.stop()

        assert calls >= 2
        assert task.running is False

    @pytest.mark.asyncio
    async def test_sync_callback_supported(self):
        calls = []
        task = PeriodicTask("sync", 60, lambda: calls.append(1) or len(calls))

        assert await task.run_once() == 1

    @pytest.mark.asyncio
    async def test_errors_do_not_stop_the_loop(self):
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            raise RuntimeError("sweep failed")

        task = PeriodicTask("flaky", 0.01, flaky)
        await task.start()
        await asyncio.sleep(0.1)
        assert task.running is True
        await task.stop()

        assert calls >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self):
        await PeriodicTask("idle", 1, lambda: None).stop()

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, lambda: None)


@pytest.mark.asyncio
async def test_container_starts_and_stops_sweeps(app):
    container = app.state.container

    await container.start()
    assert all(sweep.running for sweep in container.sweeps)
    await container.stop()

    assert not any(sweep.running for sweep in container.sweeps)
