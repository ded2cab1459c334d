"""Base model classes for Journal RAG."""

from datetime import datetime, UTC
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Timezone-aware current time used as model default."""
    return datetime.now(UTC)


class RAGBaseModel(BaseModel):
    """Base model with common configuration for all Journal RAG models."""

    model_config = ConfigDict(
        # Keep enum objects in memory, serialize values only when needed
        use_enum_values=False,
        populate_by_name=True,
        validate_assignment=True,
        extra='forbid',
    )


class TimestampedModel(RAGBaseModel):
    """Base model for entities with timestamps."""

    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the entity was created"
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        description="When the entity was last updated"
    )


class IdentifiedModel(TimestampedModel):
    """Base model for entities with ID and timestamps."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique identifier")


class StatsModel(RAGBaseModel):
    """Base model for statistics responses."""

    generated_at: datetime = Field(
        default_factory=utc_now,
        description="When these statistics were generated"
    )
