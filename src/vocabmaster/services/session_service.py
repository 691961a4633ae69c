"""Session selection and the per-answer study workflow."""
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Union

from vocabmaster.config import settings
from vocabmaster.errors import SessionClosed, StoreUnavailable
from vocabmaster.models.domain import (
    Difficulty,
    ProgressRecord,
    RecallQuality,
    SessionKind,
    VocabularyItem,
)
from vocabmaster.monitoring import (
    answers_recorded,
    empty_sessions,
    sessions_completed,
    sessions_started,
)
from vocabmaster.services.catalog_service import filter_library
from vocabmaster.services.progress_store import ProgressStore
from vocabmaster.services.scheduling import advance, utc_now
from vocabmaster.services.stats_service import DashboardStats, StatsService

logger = logging.getLogger(__name__)

# Kinds whose queue is built from the fresh-study pool
FRESH_KINDS = (SessionKind.STUDY, SessionKind.TEST)


@dataclass
class EmptySessionOutcome:
    """There was nothing to do for this kind of session. Not an error."""
    kind: SessionKind
    library_id: Optional[str] = None


class AnswerOutcome(str, Enum):
    ADVANCED = "advanced"
    SESSION_COMPLETE = "session_complete"


@dataclass
class SessionSummary:
    kind: SessionKind
    total: int
    correct: int
    incorrect: int
    wrong_items: List[VocabularyItem] = field(default_factory=list)
    points_earned: int = 0
    dashboard: Optional[DashboardStats] = None


@dataclass
class AnswerResult:
    outcome: AnswerOutcome
    item: VocabularyItem
    record: ProgressRecord
    next_item: Optional[VocabularyItem] = None
    summary: Optional[SessionSummary] = None


def session_size(difficulty: Union[Difficulty, str]) -> int:
    """Number of items in a fresh study session of the given difficulty."""
    return settings.learning.session_sizes[Difficulty(difficulty).value]


class SessionSelector:
    """Builds shuffled item queues for each session kind."""

    def __init__(
        self,
        store: ProgressStore,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock or utc_now

    def shuffled(self, items: Iterable[VocabularyItem]) -> List[VocabularyItem]:
        """Uniform random permutation drawn from the injected generator."""
        queue = list(items)
        self.rng.shuffle(queue)
        return queue

    async def review_queue(self, user_id: str, library_id: str) -> List[VocabularyItem]:
        """Library items whose next review is due."""
        now = self.clock()
        progress = await self.store.get_all_progress(user_id)
        due_ids = {item_id for item_id, record in progress.items() if record.is_due(now)}
        library = filter_library(await self.store.get_full_catalog(), library_id)
        return self.shuffled(item for item in library if item.id in due_ids)

    async def study_queue(
        self, user_id: str, library_id: str, difficulty: Union[Difficulty, str] = Difficulty.MEDIUM
    ) -> List[VocabularyItem]:
        """Unlearned library items, or the whole library once everything has been seen."""
        size = session_size(difficulty)
        progress = await self.store.get_all_progress(user_id)
        library = filter_library(await self.store.get_full_catalog(), library_id)
        unlearned = [item for item in library if item.id not in progress]
        pool = unlearned or library
        return self.shuffled(pool)[:size]

    async def mistake_queue(self, user_id: str, library_id: str) -> List[VocabularyItem]:
        mistake_ids = await self.store.get_mistake_ids(user_id)
        library = filter_library(await self.store.get_full_catalog(), library_id)
        return self.shuffled(item for item in library if item.id in mistake_ids)

    async def starred_queue(self) -> List[VocabularyItem]:
        """Starred items from the whole catalog, regardless of library."""
        catalog = await self.store.get_full_catalog()
        return self.shuffled(item for item in catalog if item.starred)

    async def select(
        self,
        user_id: str,
        kind: SessionKind,
        library_id: str,
        difficulty: Union[Difficulty, str] = Difficulty.MEDIUM,
    ) -> List[VocabularyItem]:
        if kind in FRESH_KINDS:
            return await self.study_queue(user_id, library_id, difficulty)
        if kind == SessionKind.REVIEW:
            return await self.review_queue(user_id, library_id)
        if kind == SessionKind.MISTAKES:
            return await self.mistake_queue(user_id, library_id)
        if kind == SessionKind.STARRED:
            return await self.starred_queue()
        raise ValueError(f"Unknown session kind: {kind}")


class StudySession:
    """One pass over a queue of items.

    Each answer is committed to the store as soon as it is reported. A store
    failure leaves earlier answers in place and the session on the same item,
    so the caller may report it again.
    """

    def __init__(
        self,
        service: "SessionService",
        user_id: str,
        kind: SessionKind,
        library_id: str,
        items: List[VocabularyItem],
    ):
        self.service = service
        self.user_id = user_id
        self.kind = kind
        self.library_id = library_id
        self.items = items
        self.position = 0
        self.correct = 0
        self.wrong_items: List[VocabularyItem] = []
        self.points_earned = 0

    @property
    def current_item(self) -> Optional[VocabularyItem]:
        return self.items[self.position] if self.position < len(self.items) else None

    @property
    def remaining(self) -> int:
        return len(self.items) - self.position

    @property
    def is_complete(self) -> bool:
        return self.position >= len(self.items)

    async def record_answer(self, quality: Union[RecallQuality, int, str]) -> AnswerResult:
        """Score the current item and move on.

        Order of effects: progress record, today's activity counter, mistake
        queue, points. Raises InvalidQuality before touching the store.
        """
        quality = RecallQuality.parse(quality)
        item = self.current_item
        if item is None:
            raise SessionClosed(f"{self.kind.value} session for {self.user_id} is already complete")

        store = self.service.store
        now = self.service.clock()

        current = await store.get_progress(self.user_id, item.id)
        record = advance(current, quality, now, user_id=self.user_id, item_id=item.id)
        await store.put_progress(self.user_id, record)
        await store.increment_activity(self.user_id, now.date())

        if quality.is_weak:
            await store.add_mistake(self.user_id, item.id, added_at=now)
        elif self.kind == SessionKind.MISTAKES and quality.is_strong:
            await store.remove_mistake(self.user_id, item.id)

        points = settings.learning.perfect_recall_points
        if quality == RecallQuality.PERFECT and points:
            if await store.add_points(self.user_id, points) is not None:
                self.points_earned += points

        answers_recorded.labels(quality=quality.name).inc()
        if quality.is_weak:
            self.wrong_items.append(item)
        else:
            self.correct += 1
        self.position += 1
        logger.debug(
            f"{self.user_id} answered item {item.id} with {quality.name}: "
            f"repetition {record.repetition_count}, next review in {record.interval_days} days"
        )

        if not self.is_complete:
            return AnswerResult(AnswerOutcome.ADVANCED, item, record, next_item=self.current_item)

        summary = await self._finalize()
        return AnswerResult(AnswerOutcome.SESSION_COMPLETE, item, record, summary=summary)

    async def _finalize(self) -> SessionSummary:
        sessions_completed.labels(kind=self.kind.value).inc()
        try:
            dashboard = await self.service.stats.dashboard(self.user_id, self.library_id)
        except StoreUnavailable as e:
            logger.warning(f"Could not refresh statistics after {self.kind.value} session: {e}")
            dashboard = None
        logger.info(
            f"{self.kind.value} session for {self.user_id} complete: "
            f"{self.correct}/{len(self.items)} recalled"
        )
        return SessionSummary(
            kind=self.kind,
            total=len(self.items),
            correct=self.correct,
            incorrect=len(self.wrong_items),
            wrong_items=list(self.wrong_items),
            points_earned=self.points_earned,
            dashboard=dashboard,
        )


class SessionService:
    """Entry point for starting sessions and closing test rounds."""

    def __init__(
        self,
        store: ProgressStore,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        stats: Optional[StatsService] = None,
    ):
        self.store = store
        self.clock = clock or utc_now
        self.selector = SessionSelector(store, rng=rng, clock=self.clock)
        self.stats = stats or StatsService(store, clock=self.clock)

    async def start_session(
        self,
        user_id: str,
        kind: Union[SessionKind, str],
        library_id: Optional[str] = None,
        difficulty: Union[Difficulty, str, None] = None,
    ) -> Union[StudySession, EmptySessionOutcome]:
        """Build the queue for a session, or report that there is nothing to do."""
        kind = SessionKind(kind)
        library_id = library_id or settings.learning.default_library
        difficulty = Difficulty(difficulty) if difficulty is not None else Difficulty.MEDIUM

        items = await self.selector.select(user_id, kind, library_id, difficulty)
        if not items:
            empty_sessions.labels(kind=kind.value).inc()
            logger.info(f"No items for {kind.value} session of {user_id} in {library_id}")
            return EmptySessionOutcome(kind=kind, library_id=library_id)

        sessions_started.labels(kind=kind.value).inc()
        logger.info(f"Started {kind.value} session for {user_id} with {len(items)} items")
        return StudySession(self, user_id, kind, library_id, items)

    async def finish_test(
        self, user_id: str, correct_count: int, wrong_items: Iterable[VocabularyItem]
    ) -> int:
        """Close a quiz round: wrong items go to the mistake queue, correct answers earn points.

        Returns the points awarded.
        """
        if correct_count < 0:
            raise ValueError(f"correct_count cannot be negative: {correct_count}")
        now = self.clock()
        for item in wrong_items:
            await self.store.add_mistake(user_id, item.id, added_at=now)

        points = correct_count * settings.learning.test_correct_points
        if points and await self.store.add_points(user_id, points) is None:
            return 0
        return points
