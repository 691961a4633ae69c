"""Test configuration."""
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from vocabmaster.config import ensure_directories
from vocabmaster.models.domain import ItemDraft
from vocabmaster.services.progress_store import ProgressStore

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)
LIBRARY = "CET4_CORE"


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def store_url(tmp_path: Path) -> str:
    """A fresh database file for each test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'vocabmaster.db'}"


@pytest_asyncio.fixture
async def store(store_url: str) -> AsyncGenerator[ProgressStore, None]:
    """Initialized store, closed after the test."""
    store = ProgressStore(store_url, timeout=5)
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()


def make_drafts(*headwords: str, library: str = LIBRARY) -> List[ItemDraft]:
    """Catalog drafts tagged for the given library."""
    return [
        ItemDraft(headword=headword, translation=f"{headword}-tr", tags=frozenset({library}))
        for headword in headwords
    ]


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()
