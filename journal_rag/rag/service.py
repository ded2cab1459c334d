"""Orchestrating facade for the journal RAG pipeline."""

import asyncio
import time
from typing import Any, Dict, List, Optional

from ..config.logging import LoggerMixin
from ..config.settings import Settings
from ..core.exceptions import EmbeddingValidationError, MigrationError, RateLimitExceededError
from ..migration.service import MigrationService
from ..migration.sources import ContentSource, JsonContentSource
from ..models.base import utc_now
from ..models.metrics import HealthReport, MetricsSnapshot
from ..models.migration import MigrationResult
from ..models.rag import (
    ContentToEmbed,
    ContentType,
    EmbeddingRecord,
    QueueStats,
    RetrievalOptions,
    RetrievedContext,
)
from ..models.rate_limit import Feature
from ..ratelimit import RateLimiter
from .embeddings import EmbeddingManager
from .health import HealthChecker
from .metrics import MetricsCollector
from .queue import EmbeddingJobQueue
from .retrieval import ContextRetriever, format_context
from .vector_store import VectorStore


class RAGService(LoggerMixin):
    """Single entry point for business logic.

    Embedding failures never propagate to callers: the primary journal or goal
    operation must succeed even when the provider or store is down. The only
    exception is RateLimitExceededError, which always reaches the caller.
    """

    def __init__(
        self,
        settings: Settings,
        embedding_manager: Optional[EmbeddingManager] = None,
        vector_store: Optional[VectorStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        metrics: Optional[MetricsCollector] = None,
        content_source: Optional[ContentSource] = None,
    ):
        self.settings = settings
        self.metrics = metrics or MetricsCollector(settings)
        self.embedding_manager = embedding_manager or EmbeddingManager(settings, self.metrics)
        self.vector_store = vector_store or VectorStore(settings, self.metrics)
        self.rate_limiter = rate_limiter or RateLimiter(settings, metrics=self.metrics)

        if content_source is None and settings.MIGRATION_SOURCE_PATH:
            content_source = JsonContentSource(settings.MIGRATION_SOURCE_PATH)
        self.content_source = content_source

        self.queue = EmbeddingJobQueue(settings, self._process_job)
        self.retriever = ContextRetriever(
            settings, self.embedding_manager, self.vector_store, self.rate_limiter
        )
        self.health_checker = HealthChecker(settings, self.embedding_manager, self.vector_store)
        self.migration: Optional[MigrationService] = None
        self._initialized = False

    @property
    def enabled(self) -> bool:
        return self.settings.RAG_ENABLED

    async def initialize(self) -> None:
        """Initialize components and start background tasks."""
        if self._initialized:
            return

        if not self.enabled:
            self.logger.info("RAG is disabled, service running as no-op")
            self._initialized = True
            return

        await self.embedding_manager.initialize()
        await self.vector_store.initialize()
        await self.rate_limiter.initialize()

        if self.content_source is not None:
            self.migration = MigrationService(
                self.settings,
                self.content_source,
                lambda content: self._embed_now(content, skip_rate_limit=True),
                self.vector_store,
            )

        await self.queue.start()
        await self.metrics.start()
        self._initialized = True

        self.logger.info(
            "RAG service initialized",
            provider=self.settings.EMBEDDING_PROVIDER,
            migration_enabled=self.migration is not None,
        )

    async def close(self) -> None:
        """Stop background tasks and release resources."""
        self.logger.info("RAG service closing", **self.queue.get_stats().model_dump(include={"queue_size", "failed_jobs"}))

        await self.queue.stop()
        await self.metrics.stop()

        if self.enabled and self._initialized:
            await self.rate_limiter.close()
            await self.vector_store.close()
            await self.embedding_manager.close()

        self.migration = None
        self._initialized = False
        self.logger.info("RAG service closed")

    async def embed_content(
        self,
        content: ContentToEmbed,
        run_async: bool = False,
        skip_rate_limit: bool = False,
    ) -> None:
        """Embed and store content, or queue it when ``run_async`` is set.

        Never raises pipeline failures; raises RateLimitExceededError when the
        user's embedding quota is used up.
        """
        if not self.enabled:
            self.logger.debug("RAG is disabled, skipping embedding")
            return

        if run_async:
            self.queue_embedding(content)
            return

        try:
            await self._embed_now(content, skip_rate_limit=skip_rate_limit)
        except RateLimitExceededError:
            raise
        except Exception as e:
            self.logger.error(
                "Failed to embed content",
                user_id=content.user_id,
                content_type=content.content_type.value,
                document_id=content.document_id,
                error=str(e),
            )

    async def _embed_now(self, content: ContentToEmbed, skip_rate_limit: bool = False) -> bool:
        """Rate-limit, embed and store. Raises on failure; returns False for empty text."""
        start = time.perf_counter()

        if not content.text or not content.text.strip():
            self.logger.warning(
                "Empty text provided for embedding, skipping",
                user_id=content.user_id,
                content_type=content.content_type.value,
                document_id=content.document_id,
            )
            return False

        if not skip_rate_limit:
            await self._check_quota(content.user_id, Feature.RAG_EMBEDDING)

        embedding = await self.embedding_manager.generate_embedding(content.text)
        await self.vector_store.store_embedding(
            EmbeddingRecord(
                user_id=content.user_id,
                content_type=content.content_type,
                document_id=content.document_id,
                embedding=embedding,
                text_snippet=content.text[:self.settings.RAG_SNIPPET_LENGTH],
                metadata=content.metadata,
                created_at=content.created_at or utc_now(),
            )
        )

        self.logger.info(
            "Content embedded",
            user_id=content.user_id,
            content_type=content.content_type.value,
            document_id=content.document_id,
            text_length=len(content.text),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            rate_limit_skipped=skip_rate_limit,
        )
        return True

    async def _process_job(self, content: ContentToEmbed) -> None:
        await self._embed_now(content)

    async def _check_quota(self, user_id: str, feature: Feature) -> None:
        usage = await self.rate_limiter.enforce(user_id, feature.value)
        if usage.warning:
            self.logger.warning(
                "Approaching rate limit",
                user_id=user_id,
                feature=feature.value,
                remaining=usage.remaining,
                warning=usage.warning,
            )

    def queue_embedding(self, content: ContentToEmbed) -> str:
        """Queue content for background embedding and return the job id."""
        return self.queue.queue_embedding(content)

    async def process_batch(
        self,
        contents: List[ContentToEmbed],
        skip_rate_limit: bool = False,
    ) -> Dict[str, int]:
        """Embed many items, batch by batch; failures are queued for retry."""
        results = {"success": 0, "failed": 0, "skipped": 0}
        if not self.enabled:
            self.logger.debug("RAG is disabled, skipping batch processing")
            return results

        start = time.perf_counter()
        batch_size = self.settings.EMBEDDING_BATCH_SIZE
        self.logger.info("Starting batch processing", total_items=len(contents))

        for offset in range(0, len(contents), batch_size):
            batch = contents[offset:offset + batch_size]
            outcomes = await asyncio.gather(
                *(self._embed_now(content, skip_rate_limit=skip_rate_limit) for content in batch),
                return_exceptions=True,
            )

            for content, outcome in zip(batch, outcomes):
                if outcome is True:
                    results["success"] += 1
                elif outcome is False:
                    results["skipped"] += 1
                else:
                    results["failed"] += 1
                    self.logger.error(
                        "Failed to process batch item",
                        user_id=content.user_id,
                        document_id=content.document_id,
                        error=str(outcome),
                    )
                    if not isinstance(outcome, EmbeddingValidationError):
                        self.queue_embedding(content)

            if offset + batch_size < len(contents):
                await asyncio.sleep(self.settings.EMBEDDING_BATCH_DELAY_SECONDS)

        self.logger.info(
            "Batch processing complete",
            total_items=len(contents),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            **results,
        )
        return results

    async def retrieve_context(
        self,
        query: str,
        options: RetrievalOptions,
        skip_rate_limit: bool = False,
    ) -> RetrievedContext:
        if not self.enabled:
            self.logger.debug("RAG is disabled, returning empty context")
            return RetrievedContext.empty(query)
        return await self.retriever.retrieve_context(query, options, skip_rate_limit)

    def format_context_for_ai(self, context: RetrievedContext) -> str:
        return format_context(context, self.settings.RAG_MAX_CONTEXT_LENGTH)

    async def update_embedding(
        self,
        user_id: str,
        document_id: str,
        new_text: str,
        content_type: Optional[ContentType] = None,
        metadata: Optional[Dict[str, Any]] = None,
        skip_rate_limit: bool = False,
    ) -> None:
        """Re-embed changed content.

        The new vector is generated before the old record is touched, then the
        record is replaced in one store transaction. Empty text removes the
        embedding.
        """
        if not self.enabled:
            self.logger.debug("RAG is disabled, skipping embedding update")
            return

        if not new_text or not new_text.strip():
            self.logger.warning(
                "Empty text provided for embedding update, deleting embeddings",
                user_id=user_id,
                document_id=document_id,
            )
            await self.delete_embeddings(user_id, document_id)
            return

        start = time.perf_counter()
        try:
            existing = await self.vector_store.get_by_document(user_id, document_id)
            resolved_type = content_type or (existing.content_type if existing else None)
            if resolved_type is None:
                self.logger.warning(
                    "No existing embedding and no content type given, cannot update",
                    user_id=user_id,
                    document_id=document_id,
                )
                return

            if metadata is None:
                metadata = existing.metadata if existing else {}

            if not skip_rate_limit:
                await self._check_quota(user_id, Feature.RAG_EMBEDDING)

            embedding = await self.embedding_manager.generate_embedding(new_text)
            await self.vector_store.replace_embedding(
                EmbeddingRecord(
                    user_id=user_id,
                    content_type=resolved_type,
                    document_id=document_id,
                    embedding=embedding,
                    text_snippet=new_text[:self.settings.RAG_SNIPPET_LENGTH],
                    metadata=metadata,
                )
            )

            self.logger.info(
                "Embedding updated",
                user_id=user_id,
                document_id=document_id,
                created=existing is None,
                text_length=len(new_text),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
        except RateLimitExceededError:
            raise
        except Exception as e:
            self.logger.error(
                "Failed to update embedding",
                user_id=user_id,
                document_id=document_id,
                error=str(e),
            )

    async def delete_embeddings(self, user_id: str, document_id: str) -> None:
        """Remove a document's embedding. Idempotent and never raises."""
        if not self.enabled:
            self.logger.debug("RAG is disabled, skipping embedding deletion")
            return

        start = time.perf_counter()
        try:
            deleted = await self.vector_store.delete_by_document(user_id, document_id)
            self.logger.info(
                "Embeddings deleted",
                user_id=user_id,
                document_id=document_id,
                found=deleted,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
        except Exception as e:
            self.logger.error(
                "Failed to delete embeddings",
                user_id=user_id,
                document_id=document_id,
                error=str(e),
            )

    async def migrate_existing_content(self, user_id: str) -> MigrationResult:
        """Backfill embeddings for one user's historical content."""
        if not self.enabled:
            self.logger.warning("RAG is disabled, skipping migration", user_id=user_id)
            return MigrationResult(user_id=user_id)

        if self.migration is None:
            raise MigrationError("No content source configured for migration", user_id)

        self.logger.info("Delegating content migration", user_id=user_id)
        return await self.migration.migrate_user_content(user_id)

    def get_queue_stats(self) -> QueueStats:
        return self.queue.get_stats()

    def get_metrics(self) -> MetricsSnapshot:
        return self.metrics.get_snapshot()

    async def health_check(self) -> HealthReport:
        return await self.health_checker.check()
