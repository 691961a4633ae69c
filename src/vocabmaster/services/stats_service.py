"""Aggregates derived from the store: streak, due items, mistakes, mastery."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

from vocabmaster.config import settings
from vocabmaster.models.domain import UserAccount
from vocabmaster.services.catalog_service import filter_library
from vocabmaster.services.progress_store import ProgressStore
from vocabmaster.services.scheduling import derive_streak, mastery_level, utc_now

logger = logging.getLogger(__name__)


@dataclass
class DashboardStats:
    """Home screen counters. Read without a snapshot, so not mutually consistent."""
    streak: int
    library_size: int
    due_count: int
    mistake_count: int
    starred_count: int


@dataclass
class MasteryBreakdown:
    mastered: int
    learning: int
    new: int

    @property
    def total(self) -> int:
        return self.mastered + self.learning + self.new


@dataclass
class DailyPlan:
    target: int
    reviews_today: int

    @property
    def completion(self) -> float:
        return min(1.0, self.reviews_today / self.target) if self.target else 1.0


class StatsService:
    """Service computing learner statistics."""

    def __init__(self, store: ProgressStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or utc_now

    async def streak(self, user_id: str, as_of: Optional[date] = None) -> int:
        activity = await self.store.get_activity_log(user_id)
        return derive_streak(activity, as_of or self.clock().date())

    async def dashboard(self, user_id: str, library_id: str) -> DashboardStats:
        """Refresh every home screen counter with concurrent reads."""
        now = self.clock()
        activity, catalog, mistake_ids, progress = await asyncio.gather(
            self.store.get_activity_log(user_id),
            self.store.get_full_catalog(),
            self.store.get_mistake_ids(user_id),
            self.store.get_all_progress(user_id),
        )
        library = filter_library(catalog, library_id)
        library_ids = {item.id for item in library}

        stats = DashboardStats(
            streak=derive_streak(activity, now.date()),
            library_size=len(library),
            due_count=sum(
                1 for item_id, record in progress.items()
                if item_id in library_ids and record.is_due(now)
            ),
            mistake_count=len(library_ids & mistake_ids),
            starred_count=sum(1 for item in catalog if item.starred),
        )
        logger.debug(f"Dashboard for {user_id}: {stats}")
        return stats

    async def mastery_breakdown(
        self, user_id: str, library_id: str, threshold: Optional[int] = None
    ) -> MasteryBreakdown:
        """Split the library into mastered, learning and new items."""
        threshold = threshold or settings.learning.mastery_threshold
        catalog, progress = await asyncio.gather(
            self.store.get_full_catalog(),
            self.store.get_all_progress(user_id),
        )
        breakdown = MasteryBreakdown(mastered=0, learning=0, new=0)
        for item in filter_library(catalog, library_id):
            level = mastery_level(progress.get(item.id), threshold)
            setattr(breakdown, level, getattr(breakdown, level) + 1)
        return breakdown

    async def recent_activity(
        self, user_id: str, days: int = 7, as_of: Optional[date] = None
    ) -> List[Tuple[date, int]]:
        """Review counts for the last ``days`` days, oldest first, zero-filled."""
        as_of = as_of or self.clock().date()
        activity = await self.store.get_activity_log(user_id)
        window = [as_of - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
        return [(day, activity.get(day, 0)) for day in window]

    async def daily_plan(self, user_id: str, target: Optional[int] = None) -> DailyPlan:
        today = self.clock().date()
        activity = await self.store.get_activity_log(user_id)
        return DailyPlan(
            target=target or settings.learning.daily_target,
            reviews_today=activity.get(today, 0),
        )

    async def leaderboard(self, limit: int = 10) -> List[UserAccount]:
        return await self.store.get_leaderboard(limit)
