"""Tests for session selection and the answer workflow."""
import random
from datetime import timedelta

import pytest

from conftest import LIBRARY, NOW, make_drafts
from vocabmaster.errors import InvalidQuality, SessionClosed, StoreUnavailable
from vocabmaster.models.domain import Difficulty, RecallQuality, SessionKind
from vocabmaster.services.scheduling import advance
from vocabmaster.services.session_service import (
    AnswerOutcome,
    EmptySessionOutcome,
    SessionService,
    StudySession,
)


def make_service(store, clock, seed=7):
    return SessionService(store, rng=random.Random(seed), clock=clock)


async def add_library(store, count, library=LIBRARY):
    return await store.add_items(make_drafts(*(f"word{n}" for n in range(count)), library=library))


async def play(session, quality):
    """Answer every remaining item with the same quality and return the last result."""
    result = None
    while not session.is_complete:
        result = await session.record_answer(quality)
    return result


@pytest.mark.asyncio
async def test_forgotten_item_relearned_next_day(store, clock):
    """alice forgets item 7, then recalls it perfectly a day later."""
    await store.register_user("alice", "secret")
    await add_library(store, 6, library="OTHER")
    [item_id] = await add_library(store, 1)
    assert item_id == 7
    service = make_service(store, clock)

    session = await service.start_session("alice", SessionKind.STUDY, LIBRARY)
    assert [item.id for item in session.items] == [7]
    result = await session.record_answer(RecallQuality.FORGOT)
    assert result.outcome == AnswerOutcome.SESSION_COMPLETE
    assert await store.get_mistake_ids("alice") == {7}

    clock.now = NOW + timedelta(days=1)
    session = await service.start_session("alice", SessionKind.STUDY, LIBRARY)
    result = await session.record_answer(RecallQuality.PERFECT)

    record = await store.get_progress("alice", 7)
    assert record.repetition_count == 1
    assert record.interval_days == 1
    assert record.next_review_at == clock.now + timedelta(days=1)
    assert await store.get_mistake_ids("alice") == {7}
    assert (await store.get_user("alice")).cumulative_points == 10
    assert result.summary.points_earned == 10


@pytest.mark.asyncio
async def test_easy_session_with_three_unlearned_items(store, clock):
    ids = await add_library(store, 5)
    for item_id in ids[:2]:
        await store.put_progress(
            "alice", advance(None, RecallQuality.FLUENT, NOW, user_id="alice", item_id=item_id)
        )
    service = make_service(store, clock)

    session = await service.start_session("alice", SessionKind.STUDY, LIBRARY, Difficulty.EASY)
    assert isinstance(session, StudySession)
    assert len(session.items) == 3
    assert {item.id for item in session.items} == set(ids[2:])


@pytest.mark.parametrize("difficulty,size", [("EASY", 5), ("MEDIUM", 10), ("HARD", 20)])
@pytest.mark.asyncio
async def test_study_session_size_by_difficulty(store, clock, difficulty, size):
    await add_library(store, 25)
    session = await make_service(store, clock).start_session("bob", "study", LIBRARY, difficulty)
    assert len(session.items) == size
    assert len({item.id for item in session.items}) == size


@pytest.mark.asyncio
async def test_study_falls_back_to_whole_library(store, clock):
    ids = await add_library(store, 3)
    for item_id in ids:
        await store.put_progress(
            "bob", advance(None, RecallQuality.FLUENT, NOW, user_id="bob", item_id=item_id)
        )
    session = await make_service(store, clock).start_session("bob", SessionKind.TEST, LIBRARY, "EASY")
    assert sorted(item.id for item in session.items) == ids


@pytest.mark.asyncio
async def test_empty_library(store, clock):
    await add_library(store, 3, library="OTHER")
    outcome = await make_service(store, clock).start_session("bob", SessionKind.STUDY, LIBRARY)
    assert outcome == EmptySessionOutcome(kind=SessionKind.STUDY, library_id=LIBRARY)


@pytest.mark.parametrize("kind", [SessionKind.REVIEW, SessionKind.MISTAKES, SessionKind.STARRED])
@pytest.mark.asyncio
async def test_nothing_to_drill(store, clock, kind):
    await add_library(store, 3)
    outcome = await make_service(store, clock).start_session("bob", kind, LIBRARY)
    assert isinstance(outcome, EmptySessionOutcome)
    assert outcome.kind == kind


@pytest.mark.asyncio
async def test_review_queue_contains_due_library_items(store, clock):
    ids = await add_library(store, 3)
    [other_id] = await add_library(store, 1, library="OTHER")
    earlier = NOW - timedelta(days=2)
    for item_id in (ids[0], ids[1], other_id):
        await store.put_progress(
            "carol", advance(None, RecallQuality.FLUENT, earlier, user_id="carol", item_id=item_id)
        )
    await store.put_progress(
        "carol", advance(None, RecallQuality.FLUENT, NOW, user_id="carol", item_id=ids[2])
    )

    session = await make_service(store, clock).start_session("carol", SessionKind.REVIEW, LIBRARY)
    assert sorted(item.id for item in session.items) == ids[:2]


@pytest.mark.asyncio
async def test_starred_drill_spans_libraries(store, clock):
    await add_library(store, 2)
    [other_id] = await add_library(store, 1, library="OTHER")
    await store.toggle_star(other_id)

    session = await make_service(store, clock).start_session("dave", SessionKind.STARRED, LIBRARY)
    assert [item.id for item in session.items] == [other_id]


@pytest.mark.asyncio
async def test_strong_recall_clears_mistake_only_in_drill(store, clock):
    ids = await add_library(store, 2)
    for item_id in ids:
        await store.add_mistake("erin", item_id)
    service = make_service(store, clock)

    session = await service.start_session("erin", SessionKind.STUDY, LIBRARY)
    await play(session, RecallQuality.FLUENT)
    assert await store.get_mistake_ids("erin") == set(ids)

    session = await service.start_session("erin", SessionKind.MISTAKES, LIBRARY)
    first = session.current_item
    await session.record_answer(RecallQuality.VAGUE)
    await session.record_answer(RecallQuality.PERFECT)
    assert await store.get_mistake_ids("erin") == {first.id}


@pytest.mark.asyncio
async def test_each_answer_counts_as_activity(store, clock):
    await add_library(store, 4)
    session = await make_service(store, clock).start_session("frank", SessionKind.STUDY, LIBRARY, "EASY")
    result = await play(session, RecallQuality.VAGUE)

    assert await store.get_activity_log("frank") == {NOW.date(): 4}
    summary = result.summary
    assert summary.total == 4
    assert summary.correct == 0
    assert summary.incorrect == 4
    assert summary.dashboard.streak == 1
    assert summary.dashboard.mistake_count == 4
    assert summary.dashboard.library_size == 4


@pytest.mark.asyncio
async def test_answers_advance_through_queue(store, clock):
    await add_library(store, 2)
    session = await make_service(store, clock).start_session("gina", SessionKind.STUDY, LIBRARY)
    first, second = session.items

    result = await session.record_answer("fluent")
    assert result.outcome == AnswerOutcome.ADVANCED
    assert result.item == first
    assert result.next_item == second
    assert session.remaining == 1

    result = await session.record_answer(4)
    assert result.outcome == AnswerOutcome.SESSION_COMPLETE
    assert result.summary.correct == 2
    assert session.is_complete
    with pytest.raises(SessionClosed):
        await session.record_answer(RecallQuality.FLUENT)


@pytest.mark.asyncio
async def test_invalid_quality_writes_nothing(store, clock):
    await add_library(store, 1)
    session = await make_service(store, clock).start_session("hank", SessionKind.STUDY, LIBRARY)

    with pytest.raises(InvalidQuality):
        await session.record_answer(2)
    assert session.remaining == 1
    assert await store.get_all_progress("hank") == {}
    assert await store.get_activity_log("hank") == {}


@pytest.mark.asyncio
async def test_store_failure_keeps_session_on_item(store, clock, monkeypatch):
    await add_library(store, 2)
    session = await make_service(store, clock).start_session("ivy", SessionKind.STUDY, LIBRARY)
    first = session.current_item
    increment = store.increment_activity

    async def unavailable(*args, **kwargs):
        raise StoreUnavailable("increment_activity", "database is locked")

    monkeypatch.setattr(store, "increment_activity", unavailable)
    with pytest.raises(StoreUnavailable):
        await session.record_answer(RecallQuality.FLUENT)
    assert session.current_item == first
    assert (await store.get_progress("ivy", first.id)).repetition_count == 1

    monkeypatch.setattr(store, "increment_activity", increment)
    result = await session.record_answer(RecallQuality.FLUENT)
    assert result.outcome == AnswerOutcome.ADVANCED
    assert result.record.repetition_count == 2


@pytest.mark.asyncio
async def test_seeded_sessions_are_reproducible(store, clock):
    await add_library(store, 15)
    orders = []
    for _ in range(2):
        session = await make_service(store, clock, seed=99).start_session("jo", SessionKind.STUDY, LIBRARY)
        orders.append([item.id for item in session.items])
    assert orders[0] == orders[1]


@pytest.mark.asyncio
async def test_finish_test(store, clock):
    await store.register_user("kim", "secret")
    ids = await add_library(store, 3)
    items = [await store.get_item(item_id) for item_id in ids]
    service = make_service(store, clock)

    points = await service.finish_test("kim", correct_count=2, wrong_items=items[:1])
    assert points == 40
    assert (await store.get_user("kim")).cumulative_points == 40
    assert await store.get_mistake_ids("kim") == {ids[0]}

    assert await service.finish_test("nobody", correct_count=3, wrong_items=[]) == 0
    with pytest.raises(ValueError):
        await service.finish_test("kim", correct_count=-1, wrong_items=[])


if __name__ == "__main__":
    pytest.main([__file__])
