"""Core vector store with lifecycle management and coordination."""

import asyncio
from typing import List, Optional, Sequence

from ...config.logging import LoggerMixin
from ...config.settings import Settings
from ...core.exceptions import VectorStoreError
from ...models.rag import ContentType, EmbeddingRecord, SearchQuery, SearchResult, VectorStoreStats
from ...storage.base import EmbeddingStorage
from ...storage.sqlite import SQLiteEmbeddingStorage
from ...utils.async_utils import cancel_task
from ..metrics import MetricsCollector
from .cache import UserEmbeddingCache
from .documents import DocumentOperations
from .search import SearchOperations


class VectorStore(LoggerMixin):
    """Per-user embedding storage with cosine similarity search."""

    def __init__(
        self,
        settings: Settings,
        metrics: Optional[MetricsCollector] = None,
        storage: Optional[EmbeddingStorage] = None,
    ):
        self.settings = settings
        self.metrics = metrics
        self.storage: Optional[EmbeddingStorage] = storage
        self.cache = UserEmbeddingCache(settings.RAG_CACHE_TTL_SECONDS)
        self._cleanup_task: Optional[asyncio.Task] = None
        self._initialized = False

        # Delegate operation handlers
        self._documents: Optional[DocumentOperations] = None
        self._search: Optional[SearchOperations] = None

    async def initialize(self) -> None:
        """Initialize storage, handlers and the cache cleanup task."""
        try:
            if self.storage is None:
                self.storage = SQLiteEmbeddingStorage(self.settings)
            await self.storage.initialize()

            self._documents = DocumentOperations(self.storage, self.cache, self.settings, self.logger)
            self._search = SearchOperations(
                self.storage, self.cache, self.settings, self.logger, self.metrics
            )
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="rag-cache-cleanup")
            self._initialized = True

            self.logger.info(
                "Vector store initialized",
                backend=type(self.storage).__name__,
                cache_ttl_seconds=self.settings.RAG_CACHE_TTL_SECONDS,
            )

        except Exception as e:
            self.logger.error("Failed to initialize vector store", error=str(e))
            raise VectorStoreError(f"Vector store initialization failed: {e}")

    async def close(self) -> None:
        """Close the vector store."""
        await cancel_task(self._cleanup_task)
        self._cleanup_task = None

        if self.storage:
            await self.storage.close()
            self.storage = None

        self.cache.clear()
        self._documents = None
        self._search = None
        self._initialized = False
        self.logger.info("Vector store closed")

    def _ensure_initialized(self) -> None:
        if not self._initialized or not self._documents or not self._search:
            raise VectorStoreError("Vector store not initialized")

    # Document Operations - delegated to DocumentOperations
    async def store_embedding(self, record: EmbeddingRecord) -> EmbeddingRecord:
        self._ensure_initialized()
        return await self._documents.store_embedding(record)

    async def store_embeddings(self, records: Sequence[EmbeddingRecord]) -> int:
        self._ensure_initialized()
        return await self._documents.store_embeddings(records)

    async def replace_embedding(self, record: EmbeddingRecord) -> EmbeddingRecord:
        """Upsert: delete the document's old record and insert this one atomically."""
        self._ensure_initialized()
        return await self._documents.store_embedding(record)

    async def delete_by_document(self, user_id: str, document_id: str) -> bool:
        self._ensure_initialized()
        return await self._documents.delete_by_document(user_id, document_id)

    async def get_by_document(self, user_id: str, document_id: str) -> Optional[EmbeddingRecord]:
        self._ensure_initialized()
        return await self._documents.get_by_document(user_id, document_id)

    async def list_document_ids(
        self,
        user_id: str,
        content_types: Optional[Sequence[ContentType]] = None,
    ) -> List[str]:
        self._ensure_initialized()
        return await self._documents.list_document_ids(user_id, content_types)

    # Search Operations - delegated to SearchOperations
    async def search_similar(self, query: SearchQuery) -> List[SearchResult]:
        self._ensure_initialized()
        return await self._search.search_similar(query)

    async def get_stats(self) -> VectorStoreStats:
        self._ensure_initialized()
        try:
            total, users, by_type = await self.storage.count_by_type()
        except Exception as e:
            raise VectorStoreError(f"Failed to get vector store stats: {e}")
        return VectorStoreStats(
            total_embeddings=total,
            total_users=users,
            embeddings_by_type=by_type,
            cached_users=len(self.cache),
        )

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.RAG_CACHE_CLEANUP_INTERVAL_SECONDS)
            purged = self.cache.purge_expired()
            if purged:
                self.logger.debug("Expired cache entries purged", count=purged)
