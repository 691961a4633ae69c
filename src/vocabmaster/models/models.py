"""Database models for the vocabulary trainer."""
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Float,
    Integer,
    String,
)

from vocabmaster.models.base import Base, TimestampMixin, UTCDateTime


class User(Base):
    """User model; the username is the partition key of all per-user tables."""

    __tablename__ = "users"

    username = Column(String, primary_key=True)
    secret_hash = Column(String, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC))
    cumulative_points = Column(Integer, nullable=False, default=0)


class VocabularyEntry(Base, TimestampMixin):
    """Shared catalog entry."""

    __tablename__ = "vocabulary"

    id = Column(Integer, primary_key=True, autoincrement=False)
    headword = Column(String, nullable=False)
    headword_key = Column(String, index=True)  # lower-cased, trimmed headword
    phonetic = Column(String, default="")
    translation = Column(String, default="")
    example = Column(String, default="")
    tags = Column(JSON, nullable=False, default=list)
    frequency_band = Column(String, nullable=True)  # high, medium, low
    starred = Column(Boolean, nullable=False, default=False)


class Progress(Base, TimestampMixin):
    """Spaced-repetition state keyed by (user_id, item_id)."""

    __tablename__ = "progress"

    user_id = Column(String, primary_key=True)
    item_id = Column(Integer, primary_key=True)
    repetition_count = Column(Integer, nullable=False, default=0)
    interval_days = Column(Integer, nullable=False, default=0)
    memory_factor = Column(Float, nullable=False, default=2.5)
    next_review_at = Column(UTCDateTime, nullable=False, index=True)
    last_reviewed_at = Column(UTCDateTime, nullable=True)


class Mistake(Base):
    """Mistake queue membership keyed by (user_id, item_id)."""

    __tablename__ = "mistakes"

    user_id = Column(String, primary_key=True)
    item_id = Column(Integer, primary_key=True)
    added_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC))


class Activity(Base):
    """Daily review counter keyed by (user_id, day)."""

    __tablename__ = "activity"

    user_id = Column(String, primary_key=True)
    day = Column(Date, primary_key=True)
    review_count = Column(Integer, nullable=False, default=0)


class LookupCacheEntry(Base, TimestampMixin):
    """Cached lookup result keyed by normalized headword."""

    __tablename__ = "lookup_cache"

    headword_key = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)


class SchemaVersion(Base, TimestampMixin):
    """Schema version of one logical collection."""

    __tablename__ = "schema_versions"

    collection = Column(String, primary_key=True)
    version = Column(Integer, nullable=False)


# Logical collection name -> model; wipe_all() clears every one of them
COLLECTIONS = {
    "users": User,
    "vocabulary": VocabularyEntry,
    "progress": Progress,
    "mistakes": Mistake,
    "activity": Activity,
    "lookup_cache": LookupCacheEntry,
}
