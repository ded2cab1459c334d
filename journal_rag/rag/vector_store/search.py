"""Similarity search operations handler for the vector store."""

import time
from typing import List, Optional

from ...config.settings import Settings
from ...core.exceptions import VectorStoreError
from ...models.rag import EmbeddingRecord, SearchQuery, SearchResult
from ...storage.base import EmbeddingStorage
from ...utils.similarity import cosine_similarity
from ..metrics import MetricsCollector
from .cache import UserEmbeddingCache


class SearchOperations:
    """Linear cosine scan over one user's records.

    Cost grows with the number of documents a user has embedded; an
    approximate nearest-neighbour index would replace ``_candidates`` plus
    the scan if that ever becomes too slow.
    """

    def __init__(
        self,
        storage: EmbeddingStorage,
        cache: UserEmbeddingCache,
        settings: Settings,
        logger,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.storage = storage
        self.cache = cache
        self.settings = settings
        self.logger = logger
        self.metrics = metrics

    async def search_similar(self, query: SearchQuery) -> List[SearchResult]:
        """Return records scoring at least the threshold, best first, at most ``limit``."""
        start = time.perf_counter()

        threshold = (
            query.similarity_threshold
            if query.similarity_threshold is not None
            else self.settings.RAG_SIMILARITY_THRESHOLD
        )
        limit = query.limit or self.settings.RAG_MAX_RETRIEVED_DOCS

        try:
            candidates = await self._candidates(query.user_id)
        except Exception as e:
            self.logger.error("Failed to load candidates", user_id=query.user_id, error=str(e))
            raise VectorStoreError(f"Failed to search embeddings: {e}")

        if query.content_types:
            allowed = set(query.content_types)
            candidates = [record for record in candidates if record.content_type in allowed]

        scored = []
        for record in candidates:
            # Records are loaded per user already; keep the check explicit
            if record.user_id != query.user_id:
                continue
            score = cosine_similarity(query.query_embedding, record.embedding)
            if score >= threshold:
                scored.append((score, record))

        scored.sort(key=lambda item: item[0], reverse=True)
        results = [self._to_result(score, record) for score, record in scored[:limit]]

        duration_ms = (time.perf_counter() - start) * 1000
        if self.metrics:
            self.metrics.record_search(duration_ms, len(results))

        self.logger.debug(
            "Similarity search complete",
            user_id=query.user_id,
            candidates=len(candidates),
            matches=len(scored),
            returned=len(results),
            duration_ms=round(duration_ms, 2),
        )
        return results

    async def _candidates(self, user_id: str) -> List[EmbeddingRecord]:
        cached = self.cache.get(user_id)
        if cached is not None:
            if self.metrics:
                self.metrics.record_cache_hit()
            return cached

        if self.metrics:
            self.metrics.record_cache_miss()
        generation = self.cache.generation(user_id)
        records = await self.storage.list_by_user(user_id)
        if not self.cache.set(user_id, records, generation):
            self.logger.debug("Discarded stale candidate load", user_id=user_id)
        return records

    @staticmethod
    def _to_result(score: float, record: EmbeddingRecord) -> SearchResult:
        return SearchResult(
            document_id=record.document_id,
            content_type=record.content_type,
            text_snippet=record.text_snippet,
            similarity_score=score,
            metadata=record.metadata,
            created_at=record.created_at,
        )
