"""
Evidence retrieval: embedding similarity search over the reference corpus.

Results are cached in-process by a hash of the full query tuple, with LRU
eviction and a TTL.
"""

import asyncio
import hashlib
import json
import time
from collections import OrderedDict
from functools import lru_cache
from typing import Callable

import structlog

from nda_analysis.config import get_settings
from nda_analysis.errors import RetrievalError
from nda_analysis.models.reference import Granularity, ReferenceItem
from nda_analysis.services.embedding_service import EmbeddingService, get_embedding_service
from nda_analysis.storage.reference_store import ReferenceStore, get_reference_store

logger = structlog.get_logger(__name__)


class SearchCache:
    """LRU cache of search results with per-entry expiry."""

    def __init__(
        self,
        max_size: int = 500,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache: OrderedDict[str, tuple[float, list[ReferenceItem]]] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(
        query: str,
        category: str | None,
        limit: int,
        granularity: Granularity | None,
    ) -> str:
        """Hash of the full (query, filter, limit, granularity) tuple."""
        key_string = json.dumps(
            [query, category, limit, Granularity(granularity).value if granularity else None],
            ensure_ascii=False,
        )
        return hashlib.sha256(key_string.encode()).hexdigest()

    def get(self, key: str) -> list[ReferenceItem] | None:
        entry = self._cache.get(key)
        if entry is None:
            self.misses += 1
            return None

        expires_at, items = entry
        if self._clock() >= expires_at:
            del self._cache[key]
            self.misses += 1
            return None

        self._cache.move_to_end(key)
        self.hits += 1
        return list(items)

    def set(self, key: str, items: list[ReferenceItem]) -> None:
        if key in self._cache:
            self._cache.move_to_end(key)
        elif len(self._cache) >= self._max_size:
            self._cache.popitem(last=False)
        self._cache[key] = (self._clock() + self._ttl, list(items))

    def clear(self) -> None:
        self._cache.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def stats(self) -> dict[str, float]:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": len(self._cache),
            "hit_rate": self.hits / lookups if lookups else 0.0,
        }


class EvidenceRetriever:
    """
    Similarity search over reference passages.

    Embedding and store calls are blocking, so they run in worker threads
    and concurrent searches overlap.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService | None = None,
        reference_store: ReferenceStore | None = None,
        cache: SearchCache | None = None,
    ):
        settings = get_settings()
        self.default_limit = settings.search_default_limit
        self._embedding_service = embedding_service
        self._reference_store = reference_store
        self.cache = cache or SearchCache(
            max_size=settings.search_cache_max_entries,
            ttl_seconds=settings.search_cache_ttl_seconds,
        )

    @property
    def embedding_service(self) -> EmbeddingService:
        if self._embedding_service is None:
            self._embedding_service = get_embedding_service()
        return self._embedding_service

    @property
    def reference_store(self) -> ReferenceStore:
        if self._reference_store is None:
            self._reference_store = get_reference_store()
        return self._reference_store

    async def search(
        self,
        query: str,
        category: str | None = None,
        limit: int | None = None,
        granularity: Granularity | None = None,
    ) -> list[ReferenceItem]:
        """
        Return up to ``limit`` reference passages, most similar first.

        Raises RetrievalError if embedding or the store fails.
        """
        limit = limit or self.default_limit
        key = self.cache.make_key(query, category, limit, granularity)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("search_cache_hit", query=query[:50], category=category)
            return cached

        try:
            vector = await asyncio.to_thread(self.embedding_service.embed, query)
            items = await asyncio.to_thread(
                self.reference_store.search,
                vector,
                limit,
                category,
                granularity,
            )
        except Exception as e:
            logger.warning(
                "evidence_search_failed",
                query=query[:50],
                category=category,
                granularity=granularity,
                error=str(e),
            )
            raise RetrievalError(f"Evidence search failed: {e}", query=query[:200]) from e

        items = sorted(items, key=lambda item: item.similarity, reverse=True)[:limit]
        self.cache.set(key, items)
        return items

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict[str, float]:
        return self.cache.stats()


@lru_cache()
def get_evidence_retriever() -> EvidenceRetriever:
    """Get cached evidence retriever instance."""
    return EvidenceRetriever()
