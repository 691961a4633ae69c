"""Partitioned asynchronous persistence for progress, mistakes, activity, catalog and users.

All users share the same tables. Per-user tables use a composite primary key
whose first part is the owning user, every per-user query filters on it, and
the rows that come back are checked against the requesting user before they
are returned.
"""
import asyncio
import hashlib
import hmac
import logging
import secrets
import time
from datetime import UTC, date, datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from vocabmaster.config import settings
from vocabmaster.errors import (
    DuplicateUser,
    PartitionViolation,
    StoreNotReady,
    StoreTimeout,
    StoreUnavailable,
)
from vocabmaster.models import migrations
from vocabmaster.models.base import create_engine
from vocabmaster.models.domain import (
    FrequencyBand,
    ItemDraft,
    MistakeFlag,
    ProgressRecord,
    UserAccount,
    VocabularyItem,
    normalize_headword,
)
from vocabmaster.models.models import (
    COLLECTIONS,
    Activity,
    LookupCacheEntry,
    Mistake,
    Progress,
    User,
    VocabularyEntry,
)
from vocabmaster.monitoring import db_errors, db_operation_duration, db_operations

logger = logging.getLogger(__name__)

T = TypeVar("T")

HASH_ITERATIONS = 120_000


def hash_secret(secret: str, salt: Optional[str] = None) -> str:
    """Derive a salted PBKDF2 hash for storage."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), bytes.fromhex(salt), HASH_ITERATIONS)
    return f"pbkdf2_sha256${HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_secret(secret: str, stored: str) -> bool:
    """Check a secret against a value produced by hash_secret."""
    try:
        _, iterations, salt, expected = stored.split("$")
        digest = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), bytes.fromhex(salt), int(iterations))
    except ValueError:
        logger.error("Stored secret hash has an unexpected format")
        return False
    return hmac.compare_digest(digest.hex(), expected)


def _check_partition(collection: str, user_id: str, owners: Iterable[str]) -> None:
    foreign = [owner for owner in owners if owner != user_id]
    if foreign:
        raise PartitionViolation(collection, user_id, foreign)


def _to_record(row: Progress) -> ProgressRecord:
    return ProgressRecord(
        user_id=row.user_id,
        item_id=row.item_id,
        repetition_count=row.repetition_count,
        interval_days=row.interval_days,
        memory_factor=row.memory_factor,
        next_review_at=row.next_review_at,
        last_reviewed_at=row.last_reviewed_at,
    )


def _to_item(row: VocabularyEntry) -> VocabularyItem:
    return VocabularyItem(
        id=row.id,
        headword=row.headword,
        phonetic=row.phonetic or "",
        translation=row.translation or "",
        example=row.example or "",
        tags=frozenset(row.tags or ()),
        frequency_band=FrequencyBand(row.frequency_band) if row.frequency_band else None,
        starred=bool(row.starred),
    )


def _to_entry(item: VocabularyItem) -> VocabularyEntry:
    return VocabularyEntry(
        id=item.id,
        headword=item.headword.strip(),
        headword_key=normalize_headword(item.headword),
        phonetic=item.phonetic,
        translation=item.translation,
        example=item.example,
        tags=sorted(item.tags),
        frequency_band=item.frequency_band.value if item.frequency_band else None,
        starred=item.starred,
    )


async def _append_items(session: AsyncSession, drafts: List[ItemDraft]) -> List[int]:
    current_max = await session.scalar(select(func.max(VocabularyEntry.id)))
    next_id = (current_max or 0) + 1
    ids = []
    for draft in drafts:
        item = VocabularyItem(
            id=next_id,
            headword=draft.headword,
            phonetic=draft.phonetic,
            translation=draft.translation,
            example=draft.example,
            tags=frozenset(draft.tags),
            frequency_band=draft.frequency_band,
            starred=False,
        )
        session.add(_to_entry(item))
        ids.append(next_id)
        next_id += 1
    return ids


def _to_user(row: User) -> UserAccount:
    return UserAccount(
        username=row.username,
        created_at=row.created_at,
        cumulative_points=row.cumulative_points or 0,
    )


class ProgressStore:
    """Handle on one backing database.

    Create it, ``await initialize()`` once, pass it to the services, and
    ``await close()`` at shutdown. Operations issued before initialization
    raise StoreNotReady.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        echo: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or settings.database.url
        self.echo = settings.database.echo if echo is None else echo
        self.timeout = settings.database.timeout if timeout is None else timeout
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        self._init_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._session_factory is not None

    async def initialize(self) -> None:
        """Create tables and run pending migrations. Safe to call more than once."""
        async with self._init_lock:
            if self.is_ready:
                return
            engine = create_engine(self.url, echo=self.echo)
            try:
                async with engine.begin() as conn:
                    changed = await conn.run_sync(migrations.upgrade)
            except (SQLAlchemyError, migrations.SchemaError, OSError) as e:
                await engine.dispose()
                db_errors.labels(error_type=type(e).__name__).inc()
                logger.error(f"Failed to initialize store at {self.url}: {e}")
                raise StoreUnavailable("initialize", str(e)) from e

            for collection, (old, new) in changed.items():
                logger.info(f"Collection {collection} migrated from v{old} to v{new}")
            self._engine = engine
            self._session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
            logger.info("Progress store initialized")

    async def close(self) -> None:
        """Release the connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None

    async def __aenter__(self) -> "ProgressStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``work`` in its own transaction, committing only if it returns."""
        if not self.is_ready:
            raise StoreNotReady(operation)

        db_operations.labels(operation_type=operation).inc()
        started = time.perf_counter()
        try:
            return await asyncio.wait_for(self._transaction(work), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            db_errors.labels(error_type="timeout").inc()
            logger.error(f"Store operation {operation} timed out after {self.timeout}s")
            raise StoreTimeout(operation, self.timeout) from e
        except SQLAlchemyError as e:
            db_errors.labels(error_type=type(e).__name__).inc()
            logger.error(f"Store operation {operation} failed: {e}")
            raise StoreUnavailable(operation, str(e)) from e
        finally:
            db_operation_duration.labels(operation_type=operation).observe(time.perf_counter() - started)

    async def _transaction(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            async with session.begin():
                return await work(session)

    # --- Progress ---

    async def put_progress(self, user_id: str, record: ProgressRecord) -> None:
        """Insert or overwrite the record for (user_id, record.item_id)."""
        _check_partition("progress", user_id, [record.user_id])

        async def work(session: AsyncSession) -> None:
            await session.merge(
                Progress(
                    user_id=user_id,
                    item_id=record.item_id,
                    repetition_count=record.repetition_count,
                    interval_days=record.interval_days,
                    memory_factor=record.memory_factor,
                    next_review_at=record.next_review_at,
                    last_reviewed_at=record.last_reviewed_at,
                )
            )

        await self._run("put_progress", work)

    async def get_progress(self, user_id: str, item_id: int) -> Optional[ProgressRecord]:
        async def work(session: AsyncSession) -> Optional[ProgressRecord]:
            row = await session.get(Progress, (user_id, item_id))
            if row is None:
                return None
            _check_partition("progress", user_id, [row.user_id])
            return _to_record(row)

        return await self._run("get_progress", work)

    async def get_all_progress(self, user_id: str) -> Dict[int, ProgressRecord]:
        """All progress records of one user, keyed by item id."""
        async def work(session: AsyncSession) -> Dict[int, ProgressRecord]:
            rows = (await session.scalars(select(Progress).where(Progress.user_id == user_id))).all()
            _check_partition("progress", user_id, (row.user_id for row in rows))
            return {row.item_id: _to_record(row) for row in rows}

        return await self._run("get_all_progress", work)

    # --- Mistakes ---

    async def add_mistake(self, user_id: str, item_id: int, added_at: Optional[datetime] = None) -> bool:
        """Flag an item for the user's mistake queue. Returns False if it was already flagged."""
        async def work(session: AsyncSession) -> bool:
            if await session.get(Mistake, (user_id, item_id)) is not None:
                return False
            session.add(Mistake(user_id=user_id, item_id=item_id, added_at=added_at or datetime.now(UTC)))
            return True

        return await self._run("add_mistake", work)

    async def remove_mistake(self, user_id: str, item_id: int) -> bool:
        """Drop an item from the mistake queue. Returns False if it was not flagged."""
        async def work(session: AsyncSession) -> bool:
            result = await session.execute(
                delete(Mistake).where(Mistake.user_id == user_id, Mistake.item_id == item_id)
            )
            return result.rowcount > 0

        return await self._run("remove_mistake", work)

    async def get_mistake_ids(self, user_id: str) -> Set[int]:
        flags = await self.get_mistake_flags(user_id)
        return {flag.item_id for flag in flags}

    async def get_mistake_flags(self, user_id: str) -> List[MistakeFlag]:
        async def work(session: AsyncSession) -> List[MistakeFlag]:
            rows = (
                await session.scalars(
                    select(Mistake).where(Mistake.user_id == user_id).order_by(Mistake.added_at)
                )
            ).all()
            _check_partition("mistakes", user_id, (row.user_id for row in rows))
            return [MistakeFlag(user_id=row.user_id, item_id=row.item_id, added_at=row.added_at) for row in rows]

        return await self._run("get_mistake_flags", work)

    # --- Activity ---

    async def put_activity(self, user_id: str, day: date, count: int) -> None:
        if count < 0:
            raise ValueError(f"Activity count cannot be negative: {count}")

        async def work(session: AsyncSession) -> None:
            await session.merge(Activity(user_id=user_id, day=day, review_count=count))

        await self._run("put_activity", work)

    async def increment_activity(self, user_id: str, day: date, by: int = 1) -> int:
        """Add ``by`` to the user's counter for ``day`` and return the new value."""
        async def work(session: AsyncSession) -> int:
            row = await session.get(Activity, (user_id, day))
            if row is None:
                row = Activity(user_id=user_id, day=day, review_count=0)
                session.add(row)
            row.review_count += by
            return row.review_count

        return await self._run("increment_activity", work)

    async def get_activity_log(self, user_id: str) -> Dict[date, int]:
        async def work(session: AsyncSession) -> Dict[date, int]:
            rows = (await session.scalars(select(Activity).where(Activity.user_id == user_id))).all()
            _check_partition("activity", user_id, (row.user_id for row in rows))
            return {row.day: row.review_count for row in rows}

        return await self._run("get_activity_log", work)

    # --- Catalog ---

    async def get_full_catalog(self) -> List[VocabularyItem]:
        async def work(session: AsyncSession) -> List[VocabularyItem]:
            rows = (await session.scalars(select(VocabularyEntry).order_by(VocabularyEntry.id))).all()
            return [_to_item(row) for row in rows]

        return await self._run("get_full_catalog", work)

    async def get_item(self, item_id: int) -> Optional[VocabularyItem]:
        async def work(session: AsyncSession) -> Optional[VocabularyItem]:
            row = await session.get(VocabularyEntry, item_id)
            return _to_item(row) if row is not None else None

        return await self._run("get_item", work)

    async def find_item(self, headword: str) -> Optional[VocabularyItem]:
        """Catalog entry with the same headword, ignoring case and surrounding blanks."""
        key = normalize_headword(headword)

        async def work(session: AsyncSession) -> Optional[VocabularyItem]:
            row = (
                await session.scalars(
                    select(VocabularyEntry)
                    .where(VocabularyEntry.headword_key == key)
                    .order_by(VocabularyEntry.id)
                    .limit(1)
                )
            ).first()
            return _to_item(row) if row is not None else None

        return await self._run("find_item", work)

    async def upsert_catalog_items(self, items: Iterable[VocabularyItem]) -> int:
        """Write items by id in a single transaction; all or nothing."""
        items = list(items)

        async def work(session: AsyncSession) -> int:
            for item in items:
                await session.merge(_to_entry(item))
            return len(items)

        count = await self._run("upsert_catalog_items", work)
        logger.info(f"Upserted {count} catalog items")
        return count

    async def toggle_star(self, item_id: int) -> bool:
        """Flip the starred flag and return the new state (False for unknown items)."""
        async def work(session: AsyncSession) -> bool:
            row = await session.get(VocabularyEntry, item_id)
            if row is None:
                logger.warning(f"Cannot toggle star of unknown item {item_id}")
                return False
            row.starred = not row.starred
            return row.starred

        return await self._run("toggle_star", work)

    async def add_item(self, draft: ItemDraft) -> int:
        """Append one item with the next id above the current maximum."""
        ids = await self.add_items([draft])
        return ids[0]

    async def add_items(self, drafts: Iterable[ItemDraft]) -> List[int]:
        """Append items with consecutive ids above the current maximum, atomically."""
        drafts = list(drafts)

        async def work(session: AsyncSession) -> List[int]:
            return await _append_items(session, drafts)

        return await self._run("add_items", work)

    async def seed_items(self, updates: Iterable[VocabularyItem], drafts: Iterable[ItemDraft]) -> List[int]:
        """Rewrite existing items and append new ones in a single transaction."""
        updates = list(updates)
        drafts = list(drafts)

        async def work(session: AsyncSession) -> List[int]:
            for item in updates:
                await session.merge(_to_entry(item))
            return await _append_items(session, drafts)

        return await self._run("seed_items", work)

    # --- Users ---

    async def register_user(self, username: str, secret: str) -> UserAccount:
        """Create a user; raises DuplicateUser if the name is taken."""
        if not username or not username.strip():
            raise ValueError("Username cannot be empty")

        async def work(session: AsyncSession) -> UserAccount:
            if await session.get(User, username) is not None:
                raise DuplicateUser(username)
            row = User(
                username=username,
                secret_hash=hash_secret(secret),
                created_at=datetime.now(UTC),
                cumulative_points=0,
            )
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateUser(username) from e
            return _to_user(row)

        user = await self._run("register_user", work)
        logger.info(f"Registered user {username}")
        return user

    async def authenticate(self, username: str, secret: str) -> Optional[UserAccount]:
        async def work(session: AsyncSession) -> Optional[UserAccount]:
            row = await session.get(User, username)
            if row is None or not verify_secret(secret, row.secret_hash):
                return None
            return _to_user(row)

        return await self._run("authenticate", work)

    async def get_user(self, username: str) -> Optional[UserAccount]:
        async def work(session: AsyncSession) -> Optional[UserAccount]:
            row = await session.get(User, username)
            return _to_user(row) if row is not None else None

        return await self._run("get_user", work)

    async def add_points(self, username: str, amount: int) -> Optional[int]:
        """Add to a user's cumulative points; returns the new total, None for unknown users."""
        async def work(session: AsyncSession) -> Optional[int]:
            row = await session.get(User, username)
            if row is None:
                return None
            row.cumulative_points = max(0, (row.cumulative_points or 0) + amount)
            return row.cumulative_points

        total = await self._run("add_points", work)
        if total is None:
            logger.debug(f"Points not recorded for unregistered user {username}")
        return total

    async def get_leaderboard(self, limit: Optional[int] = None) -> List[UserAccount]:
        async def work(session: AsyncSession) -> List[UserAccount]:
            query = select(User).order_by(User.cumulative_points.desc(), User.created_at)
            if limit is not None:
                query = query.limit(limit)
            return [_to_user(row) for row in (await session.scalars(query)).all()]

        return await self._run("get_leaderboard", work)

    # --- Lookup cache ---

    async def get_cached_lookup(self, headword: str) -> Optional[Dict[str, Any]]:
        key = normalize_headword(headword)

        async def work(session: AsyncSession) -> Optional[Dict[str, Any]]:
            row = await session.get(LookupCacheEntry, key)
            return dict(row.payload) if row is not None else None

        return await self._run("get_cached_lookup", work)

    async def put_cached_lookup(self, headword: str, payload: Dict[str, Any]) -> None:
        key = normalize_headword(headword)

        async def work(session: AsyncSession) -> None:
            await session.merge(LookupCacheEntry(headword_key=key, payload=payload))

        await self._run("put_cached_lookup", work)

    # --- Reset ---

    async def wipe_all(self) -> None:
        """Delete every row of every collection. Only for an explicit data reset."""
        async def work(session: AsyncSession) -> None:
            for model in COLLECTIONS.values():
                await session.execute(delete(model))

        await self._run("wipe_all", work)
        logger.warning("All collections wiped")
