"""SM-2 spaced-repetition transition and streak derivation.

Everything here is synchronous and free of I/O. The only failure mode is an
unrecognized recall quality, which raises InvalidQuality before any state is
computed.
"""
import math
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from typing import Iterable, Mapping, Optional, Tuple, Union

from vocabmaster.models.domain import ProgressRecord, RecallQuality

INITIAL_MEMORY_FACTOR = 2.5
MIN_MEMORY_FACTOR = 1.3
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6


def utc_now() -> datetime:
    return datetime.now(UTC)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, independent of platform rounding rules."""
    return int(math.floor(value + 0.5))


def initial_progress(user_id: str, item_id: int, now: datetime) -> ProgressRecord:
    """State of an item that has never been reviewed."""
    return ProgressRecord(
        user_id=user_id,
        item_id=item_id,
        repetition_count=0,
        interval_days=0,
        memory_factor=INITIAL_MEMORY_FACTOR,
        next_review_at=now,
    )


def next_memory_factor(memory_factor: float, quality: RecallQuality) -> float:
    """Adjust the memory factor for one answer, never dropping below the floor."""
    distance = 5 - int(quality)
    adjusted = memory_factor + (0.1 - distance * (0.08 + distance * 0.02))
    return max(adjusted, MIN_MEMORY_FACTOR)


def advance(
    current: Optional[ProgressRecord],
    quality: Union[RecallQuality, int, str],
    now: Optional[datetime] = None,
    *,
    user_id: Optional[str] = None,
    item_id: Optional[int] = None,
) -> ProgressRecord:
    """Apply one recall answer and return the new progress record.

    ``current`` may be None for an item the user has never reviewed, in which
    case ``user_id`` and ``item_id`` identify the record to create.
    """
    quality = RecallQuality.parse(quality)
    if now is None:
        now = utc_now()

    if current is None:
        if user_id is None or item_id is None:
            raise ValueError("user_id and item_id are required for a first review")
        current = initial_progress(user_id, item_id, now)

    repetition = current.repetition_count
    interval = current.interval_days

    if quality >= RecallQuality.VAGUE:
        if repetition == 0:
            interval = FIRST_INTERVAL_DAYS
        elif repetition == 1:
            interval = SECOND_INTERVAL_DAYS
        else:
            interval = round_half_up(interval * current.memory_factor)
        repetition += 1
    else:
        repetition = 0
        interval = FIRST_INTERVAL_DAYS

    return replace(
        current,
        repetition_count=repetition,
        interval_days=interval,
        memory_factor=next_memory_factor(current.memory_factor, quality),
        next_review_at=now + timedelta(days=interval),
        last_reviewed_at=now,
    )


def derive_streak(
    activity: Union[Mapping[date, int], Iterable[Tuple[date, int]]],
    as_of: date,
) -> int:
    """Count consecutive active days ending today or yesterday.

    A learner who has not logged anything yet today keeps yesterday's streak;
    one who skipped both yesterday and today has none.
    """
    if isinstance(activity, Mapping):
        activity = activity.items()
    days = sorted((day for day, count in activity if count > 0), reverse=True)
    if not days:
        return 0

    if days[0] not in (as_of, as_of - timedelta(days=1)):
        return 0

    streak = 0
    previous = days[0]
    for day in days:
        if (previous - day).days > 1:
            break
        streak += 1
        previous = day
    return streak


def mastery_level(record: Optional[ProgressRecord], threshold: int) -> str:
    """Classify an item as "new", "learning" or "mastered" for statistics."""
    if record is None or record.repetition_count == 0:
        return "new"
    if record.repetition_count >= threshold:
        return "mastered"
    return "learning"
