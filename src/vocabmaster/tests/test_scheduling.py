"""Tests for the spaced-repetition transition and streak derivation."""
from datetime import timedelta

import pytest

from conftest import NOW
from vocabmaster.errors import InvalidQuality
from vocabmaster.models.domain import ProgressRecord, RecallQuality
from vocabmaster.services.scheduling import (
    INITIAL_MEMORY_FACTOR,
    MIN_MEMORY_FACTOR,
    advance,
    derive_streak,
    initial_progress,
    mastery_level,
    round_half_up,
)


def test_first_perfect_answer():
    """A first review schedules the item for tomorrow."""
    record = advance(None, RecallQuality.PERFECT, NOW, user_id="alice", item_id=7)
    assert record.user_id == "alice"
    assert record.item_id == 7
    assert record.repetition_count == 1
    assert record.interval_days == 1
    assert record.memory_factor == pytest.approx(INITIAL_MEMORY_FACTOR + 0.1)
    assert record.next_review_at == NOW + timedelta(days=1)
    assert record.last_reviewed_at == NOW


def test_first_review_requires_identity():
    with pytest.raises(ValueError):
        advance(None, RecallQuality.FLUENT, NOW)


def test_successful_intervals_grow():
    """Intervals go 1, 6, then never shrink while answers stay above Forgot."""
    record = None
    intervals = []
    for quality in [RecallQuality.VAGUE, RecallQuality.FLUENT, RecallQuality.VAGUE] * 4:
        record = advance(record, quality, NOW, user_id="bob", item_id=1)
        intervals.append(record.interval_days)
    assert intervals[:2] == [1, 6]
    assert intervals == sorted(intervals)


def test_third_interval_uses_memory_factor():
    record = ProgressRecord(
        user_id="bob",
        item_id=1,
        repetition_count=2,
        interval_days=6,
        memory_factor=2.5,
        next_review_at=NOW,
    )
    updated = advance(record, RecallQuality.FLUENT, NOW)
    assert updated.interval_days == 15
    assert updated.repetition_count == 3
    assert updated.memory_factor == pytest.approx(2.5)


def test_forgot_resets_repetitions():
    record = ProgressRecord(
        user_id="bob",
        item_id=1,
        repetition_count=4,
        interval_days=30,
        memory_factor=2.2,
        next_review_at=NOW,
    )
    updated = advance(record, RecallQuality.FORGOT, NOW)
    assert updated.repetition_count == 0
    assert updated.interval_days == 1
    assert updated.next_review_at == NOW + timedelta(days=1)
    assert updated.memory_factor == pytest.approx(1.4)


def test_memory_factor_floor():
    """Repeated poor answers never push the memory factor below the floor."""
    record = initial_progress("carol", 3, NOW)
    for quality in [RecallQuality.FORGOT, RecallQuality.VAGUE] * 10:
        record = advance(record, quality, NOW)
        assert record.memory_factor >= MIN_MEMORY_FACTOR
    assert record.memory_factor == pytest.approx(MIN_MEMORY_FACTOR)


def test_advance_does_not_mutate_input():
    record = initial_progress("carol", 3, NOW)
    advance(record, RecallQuality.PERFECT, NOW)
    assert record.repetition_count == 0
    assert record.last_reviewed_at is None


@pytest.mark.parametrize("value", [1, 2, 6, -1, 3.0, True, "great", None])
def test_invalid_quality(value):
    with pytest.raises(InvalidQuality):
        advance(None, value, NOW, user_id="dave", item_id=1)


def test_quality_parsing():
    assert RecallQuality.parse("fluent") == RecallQuality.FLUENT
    assert RecallQuality.parse(5) == RecallQuality.PERFECT
    assert RecallQuality.VAGUE.is_weak
    assert not RecallQuality.FLUENT.is_weak
    assert RecallQuality.FLUENT.is_strong


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(14.4) == 14
    assert round_half_up(15.5) == 16


def test_streak_today_only():
    today = NOW.date()
    assert derive_streak({today: 3}, today) == 1


def test_streak_broken_two_days_ago():
    today = NOW.date()
    assert derive_streak({today - timedelta(days=2): 1}, today) == 0


def test_streak_stops_at_gap():
    today = NOW.date()
    activity = {today - timedelta(days=offset): 1 for offset in (0, 1, 2, 4)}
    assert derive_streak(activity, today) == 3


def test_streak_survives_until_end_of_today():
    """Yesterday's streak still counts before today's first review."""
    today = NOW.date()
    activity = [(today - timedelta(days=1), 2), (today - timedelta(days=2), 5)]
    assert derive_streak(activity, today) == 2


def test_streak_ignores_empty_days():
    today = NOW.date()
    assert derive_streak({today: 0, today - timedelta(days=1): 4}, today) == 1
    assert derive_streak({}, today) == 0


def test_mastery_level():
    record = initial_progress("erin", 1, NOW)
    assert mastery_level(None, 5) == "new"
    assert mastery_level(record, 5) == "new"
    record.repetition_count = 2
    assert mastery_level(record, 5) == "learning"
    record.repetition_count = 5
    assert mastery_level(record, 5) == "mastered"


if __name__ == "__main__":
    pytest.main([__file__])
