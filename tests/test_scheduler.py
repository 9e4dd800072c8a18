"""
Tests for DebouncedTask: cancel-and-reschedule, flush, serialized runs.
"""

import asyncio

import pytest

from encore.services.scheduler import DebouncedTask


class Counter:
    def __init__(self, duration: float = 0.0):
        self.started = 0
        self.finished = 0
        self.duration = duration

    async def __call__(self):
        self.started += 1
        if self.duration:
            await asyncio.sleep(self.duration)
        self.finished += 1


class TestDebounce:
    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_run(self):
        action = Counter()
        task = DebouncedTask(action, delay=0.05)

        for _ in range(5):
            task.schedule()
        await asyncio.sleep(0.2)

        assert action.finished == 1
        assert task.pending is False

    @pytest.mark.asyncio
    async def test_nothing_runs_before_the_window_closes(self):
        action = Counter()
        task = DebouncedTask(action, delay=0.2)

        task.schedule()
        await asyncio.sleep(0.05)

        assert action.started == 0
        assert task.pending is True
        task.cancel()

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_run(self):
        action = Counter()
        task = DebouncedTask(action, delay=0.05)

        task.schedule()
        task.cancel()
        await asyncio.sleep(0.1)

        assert action.started == 0

    @pytest.mark.asyncio
    async def test_started_run_is_not_cancelled_by_reschedule(self):
        action = Counter(duration=0.05)
        task = DebouncedTask(action, delay=0.01)

        task.schedule()
        await asyncio.sleep(0.03)  # first run in progress
        task.schedule()
        await asyncio.sleep(0.2)

        assert action.started == 2
        assert action.finished == 2


class TestFlush:
    @pytest.mark.asyncio
    async def test_flush_runs_immediately(self):
        action = Counter()
        task = DebouncedTask(action, delay=10)

        task.schedule()
        await task.flush()

        assert action.finished == 1
        assert task.pending is False

    @pytest.mark.asyncio
    async def test_flush_without_pending_work_is_a_noop(self):
        action = Counter()
        task = DebouncedTask(action, delay=10)

        await task.flush()

        assert action.started == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_run_in_progress(self):
        action = Counter(duration=0.05)
        task = DebouncedTask(action, delay=0.01)

        task.schedule()
        await asyncio.sleep(0.03)  # run in progress
        await task.drain()

        assert action.finished == 1
        assert task.pending is False

    @pytest.mark.asyncio
    async def test_drain_drops_pending_run(self):
        action = Counter()
        task = DebouncedTask(action, delay=0.05)

        task.schedule()
        await task.drain()
        await asyncio.sleep(0.1)

        assert action.started == 0

    def test_schedule_without_loop_defers_until_flush(self):
        action = Counter()
        task = DebouncedTask(action, delay=10)

        task.schedule()
        assert task.pending is True

        asyncio.run(task.flush())
        assert action.finished == 1

    @pytest.mark.asyncio
    async def test_failing_action_is_logged_not_raised(self, caplog):
        async def boom():
            raise RuntimeError("remote down")

        task = DebouncedTask(boom, delay=10, name="sync")
        task.schedule()
        await task.flush()

        assert "sync failed" in caplog.text
