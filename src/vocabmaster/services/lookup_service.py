"""Cached word lookups in front of an external definition provider."""
import logging
from typing import Optional, Protocol

from vocabmaster.config import settings
from vocabmaster.errors import StoreUnavailable
from vocabmaster.models.domain import WordInsight, normalize_headword
from vocabmaster.monitoring import lookup_cache_hits, lookup_cache_misses
from vocabmaster.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


class LookupProvider(Protocol):
    """Anything that can describe a headword, usually a remote service."""

    async def lookup(self, headword: str) -> Optional[WordInsight]:
        ...


class LookupService:
    """Answers lookups from the store cache and asks the provider only on a miss.

    The cache is best effort: a failing cache read or write is logged and the
    lookup carries on.
    """

    def __init__(
        self,
        store: ProgressStore,
        provider: Optional[LookupProvider] = None,
        enabled: Optional[bool] = None,
    ):
        self.store = store
        self.provider = provider
        self.enabled = settings.lookup.enabled if enabled is None else enabled

    async def lookup(self, headword: str) -> Optional[WordInsight]:
        key = normalize_headword(headword)
        if not key:
            return None

        try:
            cached = await self.store.get_cached_lookup(key)
        except StoreUnavailable as e:
            logger.warning(f"Failed to check lookup cache for {key}: {e}")
            cached = None
        if cached is not None:
            lookup_cache_hits.inc()
            logger.debug(f"Using cached lookup for {key}")
            return WordInsight.from_payload(cached)

        if not self.enabled or self.provider is None:
            return None

        lookup_cache_misses.inc()
        insight = await self.provider.lookup(headword.strip())
        if insight is None:
            logger.info(f"No definition found for {key}")
            return None

        try:
            await self.store.put_cached_lookup(key, insight.to_payload())
        except StoreUnavailable as e:
            logger.warning(f"Failed to cache lookup for {key}: {e}")
        return insight
