"""Service for managing the shared vocabulary catalog."""
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional

from vocabmaster.datasets import VocabDataset
from vocabmaster.models.domain import (
    IMPORTED_TAG,
    SCANNED_TAG,
    ItemDraft,
    VocabularyItem,
    normalize_headword,
)
from vocabmaster.monitoring import items_added
from vocabmaster.services.lookup_service import LookupService
from vocabmaster.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)

_TOKEN_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")
_ALPHABETIC = re.compile(r"^[A-Za-z]+$")
MIN_TOKEN_LENGTH = 3


@dataclass
class ImportResult:
    """Outcome of a bulk import."""
    added_ids: List[int] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)


@dataclass
class ScanResult:
    """Outcome of feeding OCR tokens into the catalog."""
    matched: List[VocabularyItem] = field(default_factory=list)
    added: List[VocabularyItem] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)


def filter_library(catalog: Iterable[VocabularyItem], library_id: str) -> List[VocabularyItem]:
    """Items of the active library: tagged with the dataset id, imported or scanned."""
    return [item for item in catalog if item.in_library(library_id)]


def normalize_tokens(tokens: Iterable[str]) -> List[str]:
    """Clean raw OCR tokens, keeping alphabetic words of three letters or more, first occurrence wins."""
    seen = set()
    words = []
    for token in tokens:
        for part in _TOKEN_PUNCTUATION.sub("", token).split():
            if len(part) < MIN_TOKEN_LENGTH or not _ALPHABETIC.match(part):
                continue
            key = part.lower()
            if key in seen:
                continue
            seen.add(key)
            words.append(part)
    return words


class CatalogService:
    """Service for managing the shared vocabulary catalog."""

    def __init__(self, store: ProgressStore, lookup: Optional[LookupService] = None):
        """Initialize the service with a store handle and an optional lookup service."""
        self.store = store
        self.lookup = lookup

    async def active_library(self, library_id: str) -> List[VocabularyItem]:
        """Get the items of the given library."""
        return filter_library(await self.store.get_full_catalog(), library_id)

    async def ensure_library(self, dataset: VocabDataset) -> int:
        """Seed a dataset unless the catalog already carries its tag.

        Headwords that already exist get the dataset tag added instead of a
        second entry. Returns the number of new items.
        """
        catalog = await self.store.get_full_catalog()
        if any(dataset.id in item.tags for item in catalog):
            logger.debug(f"Dataset {dataset.id} already seeded")
            return 0

        by_headword = {normalize_headword(item.headword): item for item in catalog}
        retagged: List[VocabularyItem] = []
        new_drafts: List[ItemDraft] = []
        for draft in dataset.entries:
            existing = by_headword.get(draft.normalized_headword)
            if existing is not None:
                retagged.append(replace(existing, tags=existing.tags | draft.tags))
            else:
                new_drafts.append(draft)

        added = await self.store.seed_items(retagged, new_drafts)
        items_added.labels(source="seed").inc(len(added))
        logger.info(
            f"Seeded dataset {dataset.id}: {len(added)} new items, {len(retagged)} existing items tagged"
        )
        return len(added)

    async def import_items(self, drafts: Iterable[ItemDraft]) -> ImportResult:
        """Add parsed items that are not in the catalog yet, tagged as imported."""
        catalog = await self.store.get_full_catalog()
        known = {normalize_headword(item.headword) for item in catalog}

        result = ImportResult()
        fresh: List[ItemDraft] = []
        for draft in drafts:
            key = draft.normalized_headword
            if not key or key in known:
                result.duplicates.append(draft.headword)
                continue
            known.add(key)
            fresh.append(replace(draft, headword=draft.headword.strip(), tags=draft.tags | {IMPORTED_TAG}))

        if fresh:
            result.added_ids = await self.store.add_items(fresh)
            items_added.labels(source="import").inc(len(result.added_ids))
        logger.info(f"Imported {len(result.added_ids)} items, skipped {len(result.duplicates)} duplicates")
        return result

    async def add_scanned_tokens(self, tokens: Iterable[str]) -> ScanResult:
        """Match OCR tokens against the catalog and add the unknown ones through the lookup service."""
        result = ScanResult()
        for word in normalize_tokens(tokens):
            existing = await self.store.find_item(word)
            if existing is not None:
                result.matched.append(existing)
                continue

            item = await self.add_from_lookup(word, tags=frozenset({SCANNED_TAG}))
            if item is None:
                result.unresolved.append(word)
            else:
                result.added.append(item)

        logger.info(
            f"Scanned tokens: {len(result.matched)} matched, {len(result.added)} added, "
            f"{len(result.unresolved)} unresolved"
        )
        return result

    async def add_from_lookup(self, headword: str, tags: frozenset = frozenset()) -> Optional[VocabularyItem]:
        """Define a headword through the lookup service and add it to the catalog."""
        if self.lookup is None:
            logger.warning(f"No lookup service configured, cannot define {headword}")
            return None

        insight = await self.lookup.lookup(headword)
        if insight is None or not insight.translation:
            return None

        draft = ItemDraft(
            headword=headword.strip(),
            phonetic=insight.phonetic,
            translation=insight.translation,
            example=insight.example,
            tags=tags,
        )
        item_id = await self.store.add_item(draft)
        items_added.labels(source="lookup").inc()
        return await self.store.get_item(item_id)

    async def toggle_star(self, item_id: int) -> bool:
        return await self.store.toggle_star(item_id)

    async def search(self, query: str, limit: int = 10) -> List[VocabularyItem]:
        """Search items by headword or translation substring."""
        needle = query.strip().lower()
        if not needle:
            return []
        catalog = await self.store.get_full_catalog()
        matches = [
            item for item in catalog
            if needle in item.headword.lower() or needle in item.translation.lower()
        ]
        matches.sort(key=lambda item: (not item.headword.lower().startswith(needle), item.headword.lower()))
        return matches[:limit]
