"""Plain data structures shared by the scheduler, the store and the sessions."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, List, NamedTuple, Optional, Union

from vocabmaster.errors import InvalidQuality


IMPORTED_TAG = "imported"
SCANNED_TAG = "scanned"
USER_ADDED_TAGS = frozenset({IMPORTED_TAG, SCANNED_TAG})


class RecallQuality(IntEnum):
    """The four checkpoints a learner can report after a recall attempt.

    The numeric gaps are intentional: these are named levels of the SM-2
    quality scale, not a contiguous 0..5 range.
    """
    FORGOT = 0
    VAGUE = 3
    FLUENT = 4
    PERFECT = 5

    @classmethod
    def parse(cls, value: Union["RecallQuality", int, str]) -> "RecallQuality":
        """Return the matching level or raise InvalidQuality."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidQuality(value) from None
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidQuality(value)
        try:
            return cls(value)
        except ValueError:
            raise InvalidQuality(value) from None

    @property
    def is_weak(self) -> bool:
        """Forgot and Vague put an item on the mistake queue."""
        return self <= RecallQuality.VAGUE

    @property
    def is_strong(self) -> bool:
        """Fluent and Perfect take an item off the mistake queue during a drill."""
        return self >= RecallQuality.FLUENT


class FrequencyBand(str, Enum):
    """How common a headword is in the source corpus."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Difficulty(str, Enum):
    """Fresh study session size selector."""
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class SessionKind(str, Enum):
    """The kinds of pass a learner can start."""
    STUDY = "study"
    TEST = "test"
    REVIEW = "review"
    MISTAKES = "mistakes"
    STARRED = "starred"


class PartitionKey(NamedTuple):
    """Two-part key of every per-user row: the owner and the entity inside its partition."""
    user_id: str
    entity_id: Union[int, date]

    def __str__(self) -> str:
        entity = self.entity_id.isoformat() if isinstance(self.entity_id, date) else self.entity_id
        return f"{self.user_id!r}/{entity}"


@dataclass
class VocabularyItem:
    """A learnable catalog entry, shared by all users."""
    id: int
    headword: str
    phonetic: str = ""
    translation: str = ""
    example: str = ""
    tags: FrozenSet[str] = field(default_factory=frozenset)
    frequency_band: Optional[FrequencyBand] = None
    starred: bool = False

    def in_library(self, library_id: str) -> bool:
        """Whether the item belongs to the active library of a learner."""
        return library_id in self.tags or bool(self.tags & USER_ADDED_TAGS)


@dataclass
class ItemDraft:
    """Catalog entry without an id yet, as produced by import, OCR or lookup."""
    headword: str
    phonetic: str = ""
    translation: str = ""
    example: str = ""
    tags: FrozenSet[str] = field(default_factory=frozenset)
    frequency_band: Optional[FrequencyBand] = None

    @property
    def normalized_headword(self) -> str:
        return normalize_headword(self.headword)


@dataclass
class ProgressRecord:
    """Spaced-repetition state of one item for one user."""
    user_id: str
    item_id: int
    repetition_count: int
    interval_days: int
    memory_factor: float
    next_review_at: datetime
    last_reviewed_at: Optional[datetime] = None

    @property
    def key(self) -> PartitionKey:
        return PartitionKey(self.user_id, self.item_id)

    def is_due(self, now: datetime) -> bool:
        return self.next_review_at <= now


@dataclass
class MistakeFlag:
    """Presence of an item in a user's mistake queue."""
    user_id: str
    item_id: int
    added_at: datetime


@dataclass
class ActivityRecord:
    """Number of recall events a user logged on one calendar day."""
    user_id: str
    day: date
    review_count: int


@dataclass
class UserAccount:
    """The minimal user record that keys a partition."""
    username: str
    created_at: datetime
    cumulative_points: int = 0


@dataclass
class WordInsight:
    """Whatever the lookup collaborator knows about a headword."""
    headword: str
    translation: str = ""
    phonetic: str = ""
    example: str = ""
    mnemonic: Optional[str] = None
    etymology: List[Dict[str, str]] = field(default_factory=list)
    cognates: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Serializable form stored in the lookup cache."""
        return {
            "headword": self.headword,
            "translation": self.translation,
            "phonetic": self.phonetic,
            "example": self.example,
            "mnemonic": self.mnemonic,
            "etymology": list(self.etymology),
            "cognates": list(self.cognates),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "WordInsight":
        return cls(
            headword=payload.get("headword", ""),
            translation=payload.get("translation") or "",
            phonetic=payload.get("phonetic") or "",
            example=payload.get("example") or "",
            mnemonic=payload.get("mnemonic"),
            etymology=list(payload.get("etymology") or []),
            cognates=list(payload.get("cognates") or []),
        )


def normalize_headword(headword: str) -> str:
    """Key used for case-insensitive headword comparison."""
    return headword.strip().lower()
