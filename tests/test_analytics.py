"""Tests for the analytics sink."""

import pytest

from connect_arena.analytics import GAME_END, GAME_START, MOVE_MADE, AnalyticsService, LifecycleEvent


@pytest.mark.asyncio
async def test_publish_buffers_and_forwards() -> None:
    """Test events are kept and handed to the forwarder."""
    forwarded = []

    async def forward(event):
        forwarded.append(event)

    service = AnalyticsService(forward=forward)
    assert await service.publish(LifecycleEvent(type=GAME_START, session_id="s1")) is True

    assert len(service.events) == 1
    assert forwarded[0]["type"] == GAME_START
    assert forwarded[0]["session_id"] == "s1"


@pytest.mark.asyncio
async def test_failing_forwarder_is_swallowed() -> None:
    """Test a broken forwarder never raises into the caller."""
    async def forward(event):
        raise ConnectionError("collector down")

    service = AnalyticsService(forward=forward)
    assert await service.publish(LifecycleEvent(type=MOVE_MADE, session_id="s1")) is False
    assert len(service.events) == 1


@pytest.mark.asyncio
async def test_buffer_is_capped() -> None:
    """Test the oldest events are dropped past capacity."""
    service = AnalyticsService(max_events=2)
    for i in range(3):
        await service.publish(LifecycleEvent(type=MOVE_MADE, session_id=f"s{i}"))

    assert [event.session_id for event in service.events] == ["s1", "s2"]


@pytest.mark.asyncio
async def test_game_analytics_summary() -> None:
    """Test totals and average duration in minutes."""
    service = AnalyticsService()
    await service.publish(LifecycleEvent(type=GAME_START, session_id="s1", timestamp=1000.0))
    await service.publish(LifecycleEvent(type=GAME_END, session_id="s1", timestamp=1120.0))
    await service.publish(LifecycleEvent(type=GAME_START, session_id="s2", timestamp=1200.0))

    summary = service.get_game_analytics()
    assert summary["total_games"] == 2
    assert summary["completed_games"] == 1
    assert summary["average_game_duration"] == pytest.approx(2.0)
    assert 0 <= summary["most_active_hour"] <= 23


def test_empty_summary() -> None:
    """Test an empty buffer summarizes to zeros."""
    summary = AnalyticsService().get_game_analytics()
    assert summary == {
        "total_games": 0,
        "completed_games": 0,
        "average_game_duration": 0.0,
        "events_today": 0,
        "most_active_hour": 0,
    }
