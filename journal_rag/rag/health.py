"""Synthetic end-to-end health check of the RAG pipeline."""

import math
import time
from typing import Awaitable, Callable, List, Optional, TypeVar

from ..config.logging import LoggerMixin
from ..config.settings import Settings
from ..models.base import utc_now
from ..models.metrics import HealthCheckStage, HealthReport, HealthStatus
from ..models.rag import ContentType, EmbeddingRecord, SearchQuery
from .embeddings import EmbeddingManager
from .vector_store import VectorStore

T = TypeVar('T')

HEALTH_CHECK_USER_ID = "health_check_test_user"
HEALTH_CHECK_TEXT = "End-to-end health check test for RAG system"


class HealthChecker(LoggerMixin):
    """Runs embed, store write, store query and store delete against live components.

    A failed provider call with a working store reports ``degraded``; any
    store failure reports ``unhealthy``.
    """

    def __init__(self, settings: Settings, embedding_manager: EmbeddingManager, vector_store: VectorStore):
        self.settings = settings
        self.embedding_manager = embedding_manager
        self.vector_store = vector_store

    async def check(self) -> HealthReport:
        started = time.perf_counter()
        stages: List[HealthCheckStage] = []

        if not self.settings.RAG_ENABLED:
            stages = [
                HealthCheckStage(name=name, status=HealthStatus.UNHEALTHY, error="RAG is disabled")
                for name in ("embedding", "store_write", "store_query", "store_delete")
            ]
            return self._report(HealthStatus.DEGRADED, stages, started)

        embedding = await self._stage(stages, "embedding", self._check_embedding)
        if embedding is None:
            # Exercise the store even when the provider is down
            dimension = self.settings.EMBEDDING_DIMENSIONS
            embedding = [1.0 / math.sqrt(dimension)] * dimension

        document_id = f"health_check_{int(time.time() * 1000)}"
        written = await self._stage(
            stages, "store_write", lambda: self._write(document_id, embedding)
        )
        if written is not None:
            await self._stage(stages, "store_query", lambda: self._query(document_id, embedding))
            await self._stage(
                stages,
                "store_delete",
                lambda: self.vector_store.delete_by_document(HEALTH_CHECK_USER_ID, document_id),
            )

        store_ok = written is not None and all(
            stage.status == HealthStatus.HEALTHY for stage in stages if stage.name != "embedding"
        )
        embedding_ok = stages[0].status == HealthStatus.HEALTHY

        if store_ok and embedding_ok:
            status = HealthStatus.HEALTHY
        elif store_ok:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.UNHEALTHY

        report = self._report(status, stages, started)
        self.logger.info(
            "Health check complete",
            status=status.value,
            stages={stage.name: stage.status.value for stage in stages},
            total_latency_ms=round(report.total_latency_ms, 2),
        )
        return report

    async def _stage(
        self,
        stages: List[HealthCheckStage],
        name: str,
        func: Callable[[], Awaitable[T]],
    ) -> Optional[T]:
        start = time.perf_counter()
        try:
            result = await func()
        except Exception as e:
            self.logger.error("Health check stage failed", stage=name, error=str(e))
            stages.append(
                HealthCheckStage(
                    name=name,
                    status=HealthStatus.UNHEALTHY,
                    latency_ms=(time.perf_counter() - start) * 1000,
                    error=str(e),
                )
            )
            return None

        stages.append(
            HealthCheckStage(
                name=name,
                status=HealthStatus.HEALTHY,
                latency_ms=(time.perf_counter() - start) * 1000,
            )
        )
        return result if result is not None else True

    async def _check_embedding(self) -> List[float]:
        embedding = await self.embedding_manager.generate_embedding(HEALTH_CHECK_TEXT)
        if not embedding:
            raise ValueError("Embedding service returned empty result")
        return embedding

    async def _write(self, document_id: str, embedding: List[float]) -> EmbeddingRecord:
        return await self.vector_store.store_embedding(
            EmbeddingRecord(
                user_id=HEALTH_CHECK_USER_ID,
                content_type=ContentType.JOURNAL,
                document_id=document_id,
                embedding=embedding,
                text_snippet=HEALTH_CHECK_TEXT,
                metadata={"health_check": True},
            )
        )

    async def _query(self, document_id: str, embedding: List[float]) -> bool:
        results = await self.vector_store.search_similar(
            SearchQuery(
                user_id=HEALTH_CHECK_USER_ID,
                query_embedding=embedding,
                limit=5,
                similarity_threshold=0.5,
            )
        )
        if not any(result.document_id == document_id for result in results):
            raise LookupError("Failed to retrieve stored embedding")
        return True

    @staticmethod
    def _report(status: HealthStatus, stages: List[HealthCheckStage], started: float) -> HealthReport:
        return HealthReport(
            status=status,
            stages=stages,
            checked_at=utc_now(),
            total_latency_ms=(time.perf_counter() - started) * 1000,
        )
