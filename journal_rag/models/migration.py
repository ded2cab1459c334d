"""Models for backfilling embeddings from historical content."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import RAGBaseModel, StatsModel
from .rag import ContentType


class SourceItem(RAGBaseModel):
    """A piece of historical content read from a content source."""

    document_id: str = Field(min_length=1)
    content_type: ContentType
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class MigrationItemError(RAGBaseModel):
    """Failure recorded for a single item during migration."""

    document_id: str
    content_type: ContentType
    error: str


class MigrationResult(RAGBaseModel):
    """Outcome of migrating one user's content."""

    user_id: str
    total_processed: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)
    skipped_count: int = Field(default=0, ge=0)
    by_type: Dict[str, int] = Field(
        default_factory=dict,
        description="Successfully embedded items per content type"
    )
    duration_ms: float = Field(default=0.0, ge=0.0)
    errors: List[MigrationItemError] = Field(default_factory=list)

    def record_success(self, content_type: ContentType) -> None:
        self.total_processed += 1
        self.success_count += 1
        counts = dict(self.by_type)
        counts[content_type.value] = counts.get(content_type.value, 0) + 1
        self.by_type = counts

    def record_skip(self) -> None:
        self.total_processed += 1
        self.skipped_count += 1

    def record_failure(self, item: SourceItem, error: str) -> None:
        self.total_processed += 1
        self.failed_count += 1
        self.errors = [
            *self.errors,
            MigrationItemError(
                document_id=item.document_id,
                content_type=item.content_type,
                error=error,
            ),
        ]


class MigrationReport(StatsModel):
    """Aggregate outcome of migrating several users."""

    users: int = Field(default=0, ge=0)
    results: List[MigrationResult] = Field(default_factory=list)
    failed_users: Dict[str, str] = Field(default_factory=dict)
    total_processed: int = Field(default=0, ge=0)
    total_success: int = Field(default=0, ge=0)
    total_failed: int = Field(default=0, ge=0)
    duration_ms: float = Field(default=0.0, ge=0.0)

    def add_result(self, result: MigrationResult) -> None:
        self.results = [*self.results, result]
        self.total_processed += result.total_processed
        self.total_success += result.success_count
        self.total_failed += result.failed_count


class UserEstimate(RAGBaseModel):
    """Item counts for one user."""

    user_id: str
    counts: Dict[str, int] = Field(default_factory=dict)
    already_embedded: int = Field(default=0, ge=0)

    @property
    def total_items(self) -> int:
        return sum(self.counts.values())

    @property
    def pending_items(self) -> int:
        return max(0, self.total_items - self.already_embedded)


class MigrationEstimate(RAGBaseModel):
    """Dry-run projection of a migration."""

    users: List[UserEstimate] = Field(default_factory=list)
    total_items: int = Field(default=0, ge=0)
    pending_items: int = Field(default=0, ge=0)
    estimated_duration_seconds: float = Field(default=0.0, ge=0.0)


class MigrationProgress(RAGBaseModel):
    """Progress reported to a callback while migrating a user."""

    user_id: str
    processed: int = Field(ge=0)
    total: int = Field(ge=0)
    current_type: ContentType
    estimated_remaining_seconds: float = Field(default=0.0, ge=0.0)

    @property
    def percent(self) -> float:
        return (self.processed / self.total * 100.0) if self.total else 100.0
