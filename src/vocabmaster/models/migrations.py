"""Versioned, per-collection schema migrations.

Every collection carries its own version in ``schema_versions``. Opening the
store brings each collection up to ``CURRENT_VERSIONS`` by running the
registered steps in order; a step either rewrites rows in place or, when it is
declared destructive, empties its own collection and says so in the log.
Nothing else is ever cleared while opening the store.
"""
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Dict, List, Tuple

from sqlalchemy import inspect, select, text
from sqlalchemy.engine import Connection

from vocabmaster.models.base import Base
from vocabmaster.models.models import COLLECTIONS, SchemaVersion, VocabularyEntry

logger = logging.getLogger(__name__)

CURRENT_VERSIONS: Dict[str, int] = {
    "users": 1,
    "vocabulary": 3,
    "progress": 1,
    "mistakes": 1,
    "activity": 1,
    "lookup_cache": 1,
}


class SchemaError(Exception):
    """The database was written by a newer release or a step failed."""


@dataclass
class Migration:
    """One step that moves a collection from ``version - 1`` to ``version``."""
    collection: str
    version: int
    description: str
    apply: Callable[[Connection], None]
    destructive: bool = False


def _reset_vocabulary(conn: Connection) -> None:
    conn.execute(VocabularyEntry.__table__.delete())


def _backfill_headword_key(conn: Connection) -> None:
    columns = {column["name"] for column in inspect(conn).get_columns("vocabulary")}
    if "headword_key" not in columns:
        conn.execute(text("ALTER TABLE vocabulary ADD COLUMN headword_key VARCHAR"))
    table = VocabularyEntry.__table__
    rows = conn.execute(select(table.c.id, table.c.headword)).all()
    for item_id, headword in rows:
        conn.execute(
            table.update()
            .where(table.c.id == item_id)
            .values(headword_key=(headword or "").strip().lower())
        )
    logger.info(f"Backfilled headword keys for {len(rows)} catalog entries")


MIGRATIONS: List[Migration] = [
    Migration(
        collection="vocabulary",
        version=2,
        description="Rebuild catalog: seeded rows stored phonetics in the example column",
        apply=_reset_vocabulary,
        destructive=True,
    ),
    Migration(
        collection="vocabulary",
        version=3,
        description="Add normalized headword key for case-insensitive lookups",
        apply=_backfill_headword_key,
    ),
]


def pending_migrations(collection: str, from_version: int, to_version: int) -> List[Migration]:
    """Steps needed to bring ``collection`` from one version to another, in order."""
    steps = sorted(
        (m for m in MIGRATIONS if m.collection == collection and from_version < m.version <= to_version),
        key=lambda m: m.version,
    )
    expected = list(range(from_version + 1, to_version + 1))
    if [m.version for m in steps] != expected:
        raise SchemaError(
            f"No complete migration path for {collection} from v{from_version} to v{to_version}"
        )
    return steps


def upgrade(conn: Connection) -> Dict[str, Tuple[int, int]]:
    """Create missing tables and migrate every collection to its current version.

    Runs inside the caller's transaction. Returns collection -> (old, new)
    for every collection whose version changed.
    """
    existing_tables = set(inspect(conn).get_table_names())
    Base.metadata.create_all(conn)

    stored = {
        row.collection: row.version
        for row in conn.execute(select(SchemaVersion.collection, SchemaVersion.version))
    }
    now = datetime.now(UTC)
    changed: Dict[str, Tuple[int, int]] = {}

    for collection, current in CURRENT_VERSIONS.items():
        version = stored.get(collection)
        if version is None:
            # Tables created by releases without version tracking start at v1
            version = 1 if COLLECTIONS[collection].__tablename__ in existing_tables else current
        if version > current:
            raise SchemaError(
                f"{collection} is at schema v{version}, newer than supported v{current}"
            )

        for step in pending_migrations(collection, version, current):
            if step.destructive:
                logger.warning(
                    f"Migrating {collection} to v{step.version} clears the collection: {step.description}"
                )
            else:
                logger.info(f"Migrating {collection} to v{step.version}: {step.description}")
            step.apply(conn)

        if collection not in stored:
            conn.execute(
                SchemaVersion.__table__.insert().values(
                    collection=collection, version=current, created_at=now, updated_at=now
                )
            )
        elif stored[collection] != current:
            conn.execute(
                SchemaVersion.__table__.update()
                .where(SchemaVersion.collection == collection)
                .values(version=current, updated_at=now)
            )
        if version != current:
            changed[collection] = (version, current)

    return changed
