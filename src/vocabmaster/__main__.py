"""Command line maintenance for the vocabulary store."""
import argparse
import asyncio
import sys
from typing import List, Optional

from vocabmaster.config import ensure_directories, settings
from vocabmaster.datasets import get_dataset
from vocabmaster.errors import StoreUnavailable
from vocabmaster.logging_config import get_logger, setup_logging
from vocabmaster.monitoring import start_monitoring
from vocabmaster.services.catalog_service import CatalogService
from vocabmaster.services.progress_store import ProgressStore
from vocabmaster.services.stats_service import StatsService

logger = get_logger("vocabmaster")


async def init_store(url: Optional[str], library_id: str) -> int:
    """Create or migrate the database and seed the given library."""
    async with ProgressStore(url) as store:
        added = await CatalogService(store).ensure_library(get_dataset(library_id))
        catalog = await store.get_full_catalog()
    print(f"Database ready: {len(catalog)} catalog items ({added} new from {library_id})")
    return 0


async def show_stats(url: Optional[str], username: str, library_id: str) -> int:
    async with ProgressStore(url) as store:
        user = await store.get_user(username)
        if user is None:
            print(f"Unknown user: {username}", file=sys.stderr)
            return 1
        stats = StatsService(store)
        dashboard = await stats.dashboard(username, library_id)
        mastery = await stats.mastery_breakdown(username, library_id)
        plan = await stats.daily_plan(username)
        activity = await stats.recent_activity(username)

    print(f"User:        {user.username} ({user.cumulative_points} points)")
    print(f"Streak:      {dashboard.streak} days")
    print(f"Library:     {library_id}, {dashboard.library_size} items")
    print(f"Due now:     {dashboard.due_count}")
    print(f"Mistakes:    {dashboard.mistake_count}")
    print(f"Starred:     {dashboard.starred_count}")
    print(f"Mastery:     {mastery.mastered} mastered, {mastery.learning} learning, {mastery.new} new")
    print(f"Today:       {plan.reviews_today}/{plan.target} ({plan.completion:.0%})")
    print("Last 7 days: " + " ".join(f"{day:%a}:{count}" for day, count in activity))
    return 0


async def wipe_store(url: Optional[str]) -> int:
    async with ProgressStore(url) as store:
        await store.wipe_all()
    print("All collections wiped")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vocabmaster", description="Vocabulary trainer store maintenance")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    parser.add_argument("--library", default=settings.learning.default_library, help="Active library id")
    parser.add_argument("--metrics", action="store_true", help="Expose Prometheus metrics while running")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create or migrate the database and seed the library")

    stats_parser = subparsers.add_parser("stats", help="Show a learner's statistics")
    stats_parser.add_argument("username")

    wipe_parser = subparsers.add_parser("wipe", help="Delete all stored data")
    wipe_parser.add_argument("--yes", action="store_true", help="Confirm the reset")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    ensure_directories()
    setup_logging("Starting vocabmaster ...")

    if args.metrics or settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
        logger.info(f"Metrics exposed on port {settings.monitoring.port}")

    if args.command == "init":
        command = init_store(args.database_url, args.library)
    elif args.command == "stats":
        command = show_stats(args.database_url, args.username, args.library)
    else:
        if not args.yes:
            print("Refusing to wipe without --yes", file=sys.stderr)
            return 2
        command = wipe_store(args.database_url)

    try:
        return asyncio.run(command)
    except StoreUnavailable as e:
        logger.error(f"Command {args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
