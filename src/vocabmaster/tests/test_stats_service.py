"""Tests for statistics service."""
from datetime import timedelta

import pytest

from conftest import LIBRARY, NOW, make_drafts
from vocabmaster.models.domain import RecallQuality
from vocabmaster.services.scheduling import advance
from vocabmaster.services.stats_service import DailyPlan, StatsService


async def review(store, user_id, item_id, times, when=NOW):
    record = None
    for _ in range(times):
        record = advance(record, RecallQuality.FLUENT, when, user_id=user_id, item_id=item_id)
    await store.put_progress(user_id, record)


@pytest.mark.asyncio
async def test_dashboard(store, clock):
    ids = await store.add_items(make_drafts("a1", "a2", "a3", "a4"))
    [other] = await store.add_items(make_drafts("b1", library="OTHER"))
    await review(store, "alice", ids[0], 1, when=NOW - timedelta(days=3))
    await review(store, "alice", ids[1], 1)
    await review(store, "alice", other, 1, when=NOW - timedelta(days=3))
    await store.add_mistake("alice", ids[2])
    await store.add_mistake("alice", other)
    await store.toggle_star(other)
    await store.put_activity("alice", NOW.date(), 3)
    await store.put_activity("alice", NOW.date() - timedelta(days=1), 5)

    stats = await StatsService(store, clock=clock).dashboard("alice", LIBRARY)
    assert stats.streak == 2
    assert stats.library_size == 4
    assert stats.due_count == 1
    assert stats.mistake_count == 1
    assert stats.starred_count == 1


@pytest.mark.asyncio
async def test_dashboard_for_new_user(store, clock):
    await store.add_items(make_drafts("a1"))
    stats = await StatsService(store, clock=clock).dashboard("nobody", LIBRARY)
    assert (stats.streak, stats.due_count, stats.mistake_count) == (0, 0, 0)
    assert stats.library_size == 1


@pytest.mark.asyncio
async def test_mastery_breakdown(store, clock):
    ids = await store.add_items(make_drafts("m1", "m2", "m3", "m4"))
    await review(store, "bob", ids[0], 5)
    await review(store, "bob", ids[1], 2)
    await review(store, "bob", ids[2], 1)

    service = StatsService(store, clock=clock)
    breakdown = await service.mastery_breakdown("bob", LIBRARY)
    assert (breakdown.mastered, breakdown.learning, breakdown.new) == (1, 2, 1)
    assert breakdown.total == 4

    strict = await service.mastery_breakdown("bob", LIBRARY, threshold=10)
    assert strict.mastered == 0


@pytest.mark.asyncio
async def test_recent_activity(store, clock):
    today = NOW.date()
    await store.put_activity("carol", today, 2)
    await store.put_activity("carol", today - timedelta(days=3), 6)
    await store.put_activity("carol", today - timedelta(days=9), 1)

    week = await StatsService(store, clock=clock).recent_activity("carol")
    assert len(week) == 7
    assert week[0] == (today - timedelta(days=6), 0)
    assert week[3] == (today - timedelta(days=3), 6)
    assert week[-1] == (today, 2)


@pytest.mark.asyncio
async def test_daily_plan(store, clock):
    await store.put_activity("dave", NOW.date(), 5)
    plan = await StatsService(store, clock=clock).daily_plan("dave", target=20)
    assert plan.reviews_today == 5
    assert plan.completion == pytest.approx(0.25)
    assert DailyPlan(target=10, reviews_today=30).completion == 1.0


@pytest.mark.asyncio
async def test_leaderboard(store, clock):
    for name, points in [("ann", 10), ("ben", 30), ("cat", 20)]:
        await store.register_user(name, "secret")
        await store.add_points(name, points)
    board = await StatsService(store, clock=clock).leaderboard(limit=2)
    assert [(user.username, user.cumulative_points) for user in board] == [("ben", 30), ("cat", 20)]


if __name__ == "__main__":
    pytest.main([__file__])
