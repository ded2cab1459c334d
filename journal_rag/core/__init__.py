"""Core error types and server wiring for Journal RAG."""

from .exceptions import (
    ConfigurationError,
    EmbeddingError,
    EmbeddingValidationError,
    JournalRAGError,
    RateLimitExceededError,
)

__all__ = [
    "JournalRAGError",
    "ConfigurationError",
    "EmbeddingError",
    "EmbeddingValidationError",
    "RateLimitExceededError",
]
