"""Metrics and health report models."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from .base import RAGBaseModel, StatsModel


class DurationStats(RAGBaseModel):
    """Aggregated timings in milliseconds."""

    count: int = Field(default=0, ge=0)
    avg_ms: float = Field(default=0.0, ge=0.0)
    min_ms: float = Field(default=0.0, ge=0.0)
    max_ms: float = Field(default=0.0, ge=0.0)


class EmbeddingMetrics(RAGBaseModel):
    """Embedding generation counters."""

    total_generated: int = Field(default=0, ge=0)
    total_failed: int = Field(default=0, ge=0)
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    duration: DurationStats = Field(default_factory=DurationStats)
    estimated_cost_usd: float = Field(default=0.0, ge=0.0)


class SearchMetrics(RAGBaseModel):
    """Search and cache counters."""

    total_searches: int = Field(default=0, ge=0)
    total_results: int = Field(default=0, ge=0)
    avg_results_per_search: float = Field(default=0.0, ge=0.0)
    duration: DurationStats = Field(default_factory=DurationStats)
    cache_hits: int = Field(default=0, ge=0)
    cache_misses: int = Field(default=0, ge=0)
    cache_hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class QuotaMetrics(RAGBaseModel):
    """Rate limit outcomes per feature."""

    checks: Dict[str, int] = Field(default_factory=dict)
    denials: Dict[str, int] = Field(default_factory=dict)


class MetricsSnapshot(StatsModel):
    """Point-in-time view of all pipeline metrics."""

    embeddings: EmbeddingMetrics = Field(default_factory=EmbeddingMetrics)
    search: SearchMetrics = Field(default_factory=SearchMetrics)
    quota: QuotaMetrics = Field(default_factory=QuotaMetrics)
    uptime_seconds: float = Field(default=0.0, ge=0.0)


class HealthStatus(str, Enum):
    """Overall or per-stage health."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthCheckStage(RAGBaseModel):
    """Outcome of one stage of the synthetic health check."""

    name: str
    status: HealthStatus
    latency_ms: float = Field(default=0.0, ge=0.0)
    error: Optional[str] = None


class HealthReport(RAGBaseModel):
    """Result of running the health check end to end."""

    status: HealthStatus
    stages: List[HealthCheckStage] = Field(default_factory=list)
    checked_at: datetime
    total_latency_ms: float = Field(default=0.0, ge=0.0)

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY
