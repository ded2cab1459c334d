"""Data models for Journal RAG."""

from .base import IdentifiedModel, RAGBaseModel, StatsModel, TimestampedModel
from .metrics import (
    DurationStats,
    EmbeddingMetrics,
    HealthCheckStage,
    HealthReport,
    HealthStatus,
    MetricsSnapshot,
    QuotaMetrics,
    SearchMetrics,
)
from .migration import (
    MigrationEstimate,
    MigrationItemError,
    MigrationProgress,
    MigrationReport,
    MigrationResult,
    SourceItem,
    UserEstimate,
)
from .rag import (
    ContentToEmbed,
    ContentType,
    EmbeddingJob,
    EmbeddingRecord,
    QueueStats,
    RetrievalOptions,
    RetrievedContext,
    RetrievedDocument,
    SearchQuery,
    SearchResult,
    VectorStoreStats,
)
from .rate_limit import Feature, UsageInfo

__all__ = [
    "RAGBaseModel",
    "TimestampedModel",
    "IdentifiedModel",
    "StatsModel",
    "ContentType",
    "ContentToEmbed",
    "EmbeddingRecord",
    "SearchQuery",
    "SearchResult",
    "RetrievalOptions",
    "RetrievedDocument",
    "RetrievedContext",
    "EmbeddingJob",
    "QueueStats",
    "VectorStoreStats",
    "Feature",
    "UsageInfo",
    "DurationStats",
    "EmbeddingMetrics",
    "SearchMetrics",
    "QuotaMetrics",
    "MetricsSnapshot",
    "HealthStatus",
    "HealthCheckStage",
    "HealthReport",
    "SourceItem",
    "MigrationItemError",
    "MigrationResult",
    "MigrationReport",
    "MigrationEstimate",
    "MigrationProgress",
    "UserEstimate",
]
