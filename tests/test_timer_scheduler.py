"""Tests for the deferred callback scheduler."""

import asyncio
import logging

import pytest

from connect_arena.lifecycle import TimerScheduler


@pytest.mark.asyncio
async def test_callback_runs_after_delay() -> None:
    """Test a scheduled callback runs and its task is forgotten afterwards."""
    scheduler = TimerScheduler()
    fired = []

    async def callback():
        fired.append(asyncio.get_running_loop().time())

    start = asyncio.get_running_loop().time()
    task = scheduler.schedule(0.05, callback)
    assert task in scheduler.tasks
    assert fired == []

    await task
    await asyncio.sleep(0)

    assert len(fired) == 1
    assert fired[0] - start >= 0.04
    assert scheduler.tasks == set()


@pytest.mark.asyncio
async def test_failing_callback_is_logged(caplog) -> None:
    """Test an exception in a callback is logged instead of escaping the task."""
    scheduler = TimerScheduler()

    async def broken():
        raise RuntimeError("timer exploded")

    with caplog.at_level(logging.ERROR, logger="connect_arena.lifecycle"):
        task = scheduler.schedule(0.01, broken)
        await task

    assert task.exception() is None
    assert "Deferred callback failed" in caplog.text
    assert "timer exploded" in caplog.text


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_timers() -> None:
    """Test shutdown stops timers that have not fired yet."""
    scheduler = TimerScheduler()
    fired = []

    async def callback():
        fired.append(True)

    task = scheduler.schedule(10, callback)
    scheduler.shutdown()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert fired == []
    assert scheduler.tasks == set()
