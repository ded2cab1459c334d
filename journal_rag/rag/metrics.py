"""In-process metrics for the RAG pipeline."""

import asyncio
import time
from typing import Dict, Optional

from ..config.logging import LoggerMixin
from ..config.settings import Settings
from ..models.metrics import (
    DurationStats,
    EmbeddingMetrics,
    MetricsSnapshot,
    QuotaMetrics,
    SearchMetrics,
)
from ..utils.async_utils import cancel_task


class _DurationTracker:
    """Running min/avg/max without keeping individual samples."""

    def __init__(self) -> None:
        self.count = 0
        self.total_ms = 0.0
        self.min_ms: Optional[float] = None
        self.max_ms = 0.0

    def add(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def to_model(self) -> DurationStats:
        return DurationStats(
            count=self.count,
            avg_ms=self.total_ms / self.count if self.count else 0.0,
            min_ms=self.min_ms or 0.0,
            max_ms=self.max_ms,
        )


class MetricsCollector(LoggerMixin):
    """Aggregates embedding, search, cache and quota counters.

    All record_* methods are synchronous and never raise, so they can be
    called from any code path without affecting it.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._log_task: Optional[asyncio.Task] = None
        self.reset()

    def reset(self) -> None:
        self._started_at = time.monotonic()
        self._embeddings_ok = 0
        self._embeddings_failed = 0
        self._embedding_durations = _DurationTracker()
        self._searches = 0
        self._search_results = 0
        self._search_durations = _DurationTracker()
        self._cache_hits = 0
        self._cache_misses = 0
        self._quota_checks: Dict[str, int] = {}
        self._quota_denials: Dict[str, int] = {}

    def record_embedding(self, duration_ms: float, success: bool) -> None:
        self._embedding_durations.add(duration_ms)
        if success:
            self._embeddings_ok += 1
        else:
            self._embeddings_failed += 1

    def record_search(self, duration_ms: float, result_count: int) -> None:
        self._searches += 1
        self._search_results += result_count
        self._search_durations.add(duration_ms)

    def record_cache_hit(self) -> None:
        self._cache_hits += 1

    def record_cache_miss(self) -> None:
        self._cache_misses += 1

    def record_quota_check(self, feature: str, allowed: bool) -> None:
        self._quota_checks[feature] = self._quota_checks.get(feature, 0) + 1
        if not allowed:
            self._quota_denials[feature] = self._quota_denials.get(feature, 0) + 1

    def get_snapshot(self) -> MetricsSnapshot:
        attempts = self._embeddings_ok + self._embeddings_failed
        lookups = self._cache_hits + self._cache_misses

        return MetricsSnapshot(
            embeddings=EmbeddingMetrics(
                total_generated=self._embeddings_ok,
                total_failed=self._embeddings_failed,
                success_rate=self._embeddings_ok / attempts if attempts else 0.0,
                duration=self._embedding_durations.to_model(),
                # Every provider call is billed, failed ones included
                estimated_cost_usd=attempts * self.settings.EMBEDDING_COST_PER_CALL,
            ),
            search=SearchMetrics(
                total_searches=self._searches,
                total_results=self._search_results,
                avg_results_per_search=self._search_results / self._searches if self._searches else 0.0,
                duration=self._search_durations.to_model(),
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                cache_hit_rate=self._cache_hits / lookups if lookups else 0.0,
            ),
            quota=QuotaMetrics(
                checks=dict(self._quota_checks),
                denials=dict(self._quota_denials),
            ),
            uptime_seconds=time.monotonic() - self._started_at,
        )

    def log_summary(self) -> None:
        snapshot = self.get_snapshot()
        self.logger.info(
            "RAG metrics summary",
            embeddings_generated=snapshot.embeddings.total_generated,
            embeddings_failed=snapshot.embeddings.total_failed,
            success_rate=round(snapshot.embeddings.success_rate, 3),
            avg_embedding_ms=round(snapshot.embeddings.duration.avg_ms, 1),
            searches=snapshot.search.total_searches,
            avg_search_ms=round(snapshot.search.duration.avg_ms, 1),
            cache_hit_rate=round(snapshot.search.cache_hit_rate, 3),
            estimated_cost_usd=round(snapshot.embeddings.estimated_cost_usd, 5),
            quota_denials=snapshot.quota.denials,
        )

    async def start(self) -> None:
        """Start periodic summary logging."""
        if self._log_task is None or self._log_task.done():
            self._log_task = asyncio.create_task(self._log_loop(), name="rag-metrics-log")

    async def stop(self) -> None:
        await cancel_task(self._log_task)
        self._log_task = None

    async def _log_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.METRICS_LOG_INTERVAL_SECONDS)
            self.log_summary()
