"""RAG domain models: content, stored embeddings, queries and retrieved context."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from .base import IdentifiedModel, RAGBaseModel, StatsModel, utc_now


class ContentType(str, Enum):
    """Kinds of user content that can be embedded."""

    JOURNAL = "journal"
    GOAL = "goal"
    MILESTONE = "milestone"
    PROGRESS_UPDATE = "progress_update"
    CHAT_MESSAGE = "chat_message"

    @property
    def label(self) -> str:
        """Section heading used when formatting context."""
        return CONTENT_TYPE_LABELS[self]


CONTENT_TYPE_LABELS = {
    ContentType.JOURNAL: "Journal Entries",
    ContentType.GOAL: "Goals",
    ContentType.MILESTONE: "Milestones",
    ContentType.PROGRESS_UPDATE: "Progress Updates",
    ContentType.CHAT_MESSAGE: "Past Conversations",
}


class ContentToEmbed(RAGBaseModel):
    """Content handed to the pipeline by business logic."""

    user_id: str = Field(min_length=1, description="Owner of the content")
    content_type: ContentType = Field(description="Kind of content")
    document_id: str = Field(min_length=1, description="ID of the source document")
    text: str = Field(description="Text to embed")
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Tags, mood, category, status, dates"
    )
    created_at: Optional[datetime] = Field(
        default=None,
        description="Original creation time; defaults to the moment of embedding"
    )


class EmbeddingRecord(IdentifiedModel):
    """A stored embedding; at most one per (user_id, document_id)."""

    user_id: str = Field(min_length=1)
    content_type: ContentType
    document_id: str = Field(min_length=1)
    embedding: List[float] = Field(description="Embedding vector")
    text_snippet: str = Field(description="Leading characters of the source text")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('embedding')
    @classmethod
    def embedding_not_empty(cls, v: List[float]) -> List[float]:
        if not v:
            raise ValueError('Embedding cannot be empty')
        return v

    @property
    def dimension(self) -> int:
        return len(self.embedding)


class SearchQuery(RAGBaseModel):
    """Parameters for a similarity search against one user's embeddings."""

    user_id: str = Field(min_length=1)
    query_embedding: List[float]
    content_types: Optional[List[ContentType]] = None
    limit: Optional[int] = Field(default=None, ge=1)
    similarity_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class SearchResult(RAGBaseModel):
    """A single similarity hit returned by the vector store."""

    document_id: str
    content_type: ContentType
    text_snippet: str
    similarity_score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class RetrievalOptions(RAGBaseModel):
    """Options for retrieving context."""

    user_id: str = Field(min_length=1)
    content_types: Optional[List[ContentType]] = None
    limit: Optional[int] = Field(default=None, ge=1)
    similarity_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    include_recent: bool = False
    recent_days: Optional[int] = Field(default=None, ge=1)


class RetrievedDocument(RAGBaseModel):
    """A retrieved document ready for prompt formatting."""

    id: str
    type: ContentType
    content: str
    similarity: float
    created_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_search_result(cls, result: SearchResult) -> "RetrievedDocument":
        return cls(
            id=result.document_id,
            type=result.content_type,
            content=result.text_snippet,
            similarity=result.similarity_score,
            created_at=result.created_at,
            metadata=result.metadata,
        )


class RetrievedContext(RAGBaseModel):
    """Ranked documents plus the query that produced them."""

    documents: List[RetrievedDocument] = Field(default_factory=list)
    total_found: int = Field(default=0, ge=0)
    query: str = ""

    @classmethod
    def empty(cls, query: str) -> "RetrievedContext":
        return cls(documents=[], total_found=0, query=query)

    @property
    def is_empty(self) -> bool:
        return not self.documents


class EmbeddingJob(RAGBaseModel):
    """Queued request to embed content in the background."""

    id: str
    content: ContentToEmbed
    retry_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)


class QueueStats(StatsModel):
    """Snapshot of the embedding job queue."""

    queue_size: int = Field(ge=0)
    failed_jobs: int = Field(ge=0)
    is_processing: bool
    is_running: bool
    completed_jobs: int = Field(default=0, ge=0)
    permanently_failed_jobs: int = Field(default=0, ge=0)
    rate_limited_jobs: int = Field(default=0, ge=0)


class VectorStoreStats(StatsModel):
    """Statistics about stored embeddings."""

    total_embeddings: int = Field(ge=0)
    total_users: int = Field(ge=0)
    embeddings_by_type: Dict[str, int] = Field(default_factory=dict)
    cached_users: int = Field(default=0, ge=0)
