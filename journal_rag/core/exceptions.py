"""Custom exceptions for Journal RAG."""

from datetime import datetime
from typing import Any, Dict, Optional

from ..models.rate_limit import feature_name


class JournalRAGError(Exception):
    """Base exception for all Journal RAG errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [self.message]
        if self.error_code:
            parts.append(f"(code: {self.error_code})")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigurationError(JournalRAGError):
    """Raised when there's a configuration issue."""

    def __init__(self, message: str, config_key: Optional[str] = None) -> None:
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, "CONFIGURATION_ERROR", details)


class EmbeddingError(JournalRAGError):
    """Raised when the embedding provider fails."""

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        details = {"provider": provider} if provider else {}
        super().__init__(message, "EMBEDDING_ERROR", details)


class ProviderTimeoutError(EmbeddingError):
    """Raised when a provider request exceeds its timeout."""

    def __init__(self, timeout_seconds: float, provider: Optional[str] = None) -> None:
        super().__init__(
            f"Embedding request timed out after {timeout_seconds}s", provider
        )
        self.error_code = "PROVIDER_TIMEOUT"
        self.details["timeout_seconds"] = timeout_seconds


class EmbeddingValidationError(JournalRAGError):
    """Raised when text handed to the embedding client is unusable.

    Validation errors are never retried.
    """

    def __init__(self, message: str, error_code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message, error_code, {"field": "text"})


class MissingTextError(EmbeddingValidationError):
    """Raised when text is None."""

    def __init__(self) -> None:
        super().__init__("Text cannot be None", "TEXT_MISSING")


class NonStringTextError(EmbeddingValidationError):
    """Raised when text is not a string."""

    def __init__(self, actual_type: type) -> None:
        super().__init__(
            f"Text must be a string, got {actual_type.__name__}", "TEXT_NOT_STRING"
        )


class EmptyTextError(EmbeddingValidationError):
    """Raised when text is empty or whitespace only."""

    def __init__(self) -> None:
        super().__init__("Text cannot be empty or whitespace only", "TEXT_EMPTY")


class TextTooLongError(EmbeddingValidationError):
    """Raised when text exceeds the maximum embeddable length."""

    def __init__(self, length: int, max_length: int) -> None:
        super().__init__(
            f"Text length ({length}) exceeds maximum allowed length ({max_length})",
            "TEXT_TOO_LONG",
        )
        self.details.update({"length": length, "max_length": max_length})


class VectorStoreError(JournalRAGError):
    """Raised when the vector store cannot complete an operation."""

    def __init__(self, message: str, document_id: Optional[str] = None) -> None:
        details = {"document_id": document_id} if document_id else {}
        super().__init__(message, "VECTOR_STORE_ERROR", details)


class RateLimitExceededError(JournalRAGError):
    """Raised when a user's daily quota for a feature is exhausted.

    Always surfaced to the caller; ``to_dict`` produces a 429 payload.
    """

    status_code = 429

    def __init__(
        self,
        feature: str,
        remaining: int,
        limit: int,
        resets_at: datetime,
    ) -> None:
        message = (
            f"Rate limit exceeded for {feature_name(feature)}. "
            f"You have reached your daily limit of {limit}. "
            f"Limit resets at {resets_at.isoformat()}."
        )
        super().__init__(
            message,
            "RATE_LIMIT_EXCEEDED",
            {
                "feature": feature,
                "remaining": remaining,
                "limit": limit,
                "resets_at": resets_at.isoformat(),
            },
        )
        self.feature = feature
        self.remaining = remaining
        self.limit = limit
        self.resets_at = resets_at

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update({"status_code": self.status_code, "error_type": "Too Many Requests"})
        return payload


class MigrationError(JournalRAGError):
    """Raised when a backfill run cannot proceed."""

    def __init__(self, message: str, user_id: Optional[str] = None) -> None:
        details = {"user_id": user_id} if user_id else {}
        super().__init__(message, "MIGRATION_ERROR", details)


class ConnectionError(JournalRAGError):
    """Raised when there's a connection issue."""

    def __init__(self, message: str, service: Optional[str] = None) -> None:
        details = {"service": service} if service else {}
        super().__init__(message, "CONNECTION_ERROR", details)


class DatabaseError(JournalRAGError):
    """Raised when there's a database issue."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        details = {"operation": operation} if operation else {}
        super().__init__(message, "DATABASE_ERROR", details)
