"""Configuration settings for Journal RAG."""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.exceptions import ConfigurationError

DEFAULT_RATE_LIMITS: Dict[str, int] = {
    "chat": 20,
    "insights": 3,
    "tts": 5,
    "prompt_suggestions": 20,
    "goal_suggestions": 10,
    "goal_insights": 10,
    "rag_embedding": 100,
    "rag_search": 200,
    "voice_coach_session": 10,
}

DEFAULT_WARNING_THRESHOLDS: Dict[str, int] = {
    "chat": 2,
    "insights": 1,
    "tts": 1,
    "prompt_suggestions": 1,
    "goal_suggestions": 1,
    "goal_insights": 1,
    "rag_embedding": 10,
    "rag_search": 20,
    "voice_coach_session": 2,
}

EMBEDDING_PROVIDERS = ("api", "local", "hash")


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server Configuration
    SERVER_HOST: str = Field(default="localhost", description="Server host")
    SERVER_PORT: int = Field(default=8000, description="Server port")
    DEBUG: bool = Field(default=False, description="Debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_DIRECTORY: Path = Field(default=Path("./logs"), description="Log file directory")

    # Storage Configuration
    SQLITE_DATABASE_PATH: Path = Field(
        default=Path("./data/journal_rag.db"), description="SQLite database path"
    )
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    REDIS_ENABLED: bool = Field(
        default=False, description="Keep rate-limit counters in Redis instead of SQLite"
    )

    # Embedding Configuration
    EMBEDDING_PROVIDER: str = Field(
        default="api", description="Embedding provider: 'api', 'local' or 'hash'"
    )
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-004", description="Embedding model name"
    )
    EMBEDDING_DIMENSIONS: int = Field(
        default=768, description="Dimension of vectors produced by the provider"
    )
    EMBEDDING_API_BASE: Optional[str] = Field(
        default=None, description="Embedding API base URL (e.g., http://localhost:4000)"
    )
    EMBEDDING_API_KEY: Optional[str] = Field(
        default=None, description="Embedding API key"
    )
    EMBEDDING_REQUEST_TIMEOUT_SECONDS: float = Field(
        default=30.0, description="Timeout for a single provider request"
    )
    EMBEDDING_MAX_TEXT_LENGTH: int = Field(
        default=10000, description="Maximum characters accepted for one embedding"
    )
    EMBEDDING_MAX_RETRIES: int = Field(
        default=3, description="Total provider attempts per embedding"
    )
    EMBEDDING_RETRY_BASE_DELAY_SECONDS: float = Field(
        default=1.0, description="Base delay for exponential backoff"
    )
    EMBEDDING_BATCH_SIZE: int = Field(
        default=50, description="Texts per batch in batch embedding mode"
    )
    EMBEDDING_BATCH_DELAY_SECONDS: float = Field(
        default=1.0, description="Pause between batches when processing content in bulk"
    )
    EMBEDDING_COST_PER_CALL: float = Field(
        default=0.00001, description="Estimated USD cost of one embedding call"
    )

    # RAG Configuration
    RAG_ENABLED: bool = Field(default=True, description="Enable the RAG pipeline")
    RAG_SIMILARITY_THRESHOLD: float = Field(
        default=0.7, description="Default minimum similarity for retrieval"
    )
    RAG_MAX_RETRIEVED_DOCS: int = Field(
        default=5, description="Default number of retrieved documents"
    )
    RAG_CACHE_TTL_SECONDS: int = Field(
        default=3600, description="TTL of the per-user embedding cache"
    )
    RAG_CACHE_CLEANUP_INTERVAL_SECONDS: int = Field(
        default=300, description="Interval between cache cleanup passes"
    )
    RAG_MAX_CONTEXT_LENGTH: int = Field(
        default=8000, description="Maximum characters of formatted context"
    )
    RAG_SNIPPET_LENGTH: int = Field(
        default=500, description="Characters of source text kept as snippet"
    )

    # Queue Configuration
    QUEUE_DRAIN_INTERVAL_SECONDS: float = Field(
        default=10.0, description="Interval between queue drains"
    )
    QUEUE_BATCH_SIZE: int = Field(default=10, description="Jobs popped per drain")
    QUEUE_MAX_RETRY_ATTEMPTS: int = Field(
        default=3, description="Requeues allowed before a job is dropped"
    )
    QUEUE_RETRY_DELAY_SECONDS: float = Field(
        default=5.0, description="Delay before failed jobs are requeued"
    )

    # Rate Limit Configuration
    RATE_LIMITS: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS),
        description="Daily limit per feature",
    )
    RATE_LIMIT_WARNING_THRESHOLDS: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_WARNING_THRESHOLDS),
        description="Remaining count at which a warning is attached",
    )

    # Metrics Configuration
    METRICS_LOG_INTERVAL_SECONDS: int = Field(
        default=300, description="Interval between metrics summary logs"
    )

    # Migration Configuration
    MIGRATION_ITEM_DELAY_SECONDS: float = Field(
        default=0.2, description="Delay between migrated items"
    )
    MIGRATION_USER_DELAY_SECONDS: float = Field(
        default=5.0, description="Delay between users in a multi-user migration"
    )
    MIGRATION_SOURCE_PATH: Optional[Path] = Field(
        default=None, description="JSON export holding historical user content"
    )

    def validate_runtime(self) -> None:
        """Check cross-field constraints that pydantic cannot express per field."""
        if self.EMBEDDING_PROVIDER not in EMBEDDING_PROVIDERS:
            raise ConfigurationError(
                f"Unknown embedding provider '{self.EMBEDDING_PROVIDER}', "
                f"expected one of {', '.join(EMBEDDING_PROVIDERS)}",
                "EMBEDDING_PROVIDER",
            )
        if self.EMBEDDING_PROVIDER == "api" and not self.EMBEDDING_API_BASE:
            raise ConfigurationError(
                "EMBEDDING_API_BASE required for API provider", "EMBEDDING_API_BASE"
            )

        positive = {
            "EMBEDDING_DIMENSIONS": self.EMBEDDING_DIMENSIONS,
            "EMBEDDING_MAX_TEXT_LENGTH": self.EMBEDDING_MAX_TEXT_LENGTH,
            "EMBEDDING_MAX_RETRIES": self.EMBEDDING_MAX_RETRIES,
            "EMBEDDING_BATCH_SIZE": self.EMBEDDING_BATCH_SIZE,
            "RAG_MAX_RETRIEVED_DOCS": self.RAG_MAX_RETRIEVED_DOCS,
            "RAG_MAX_CONTEXT_LENGTH": self.RAG_MAX_CONTEXT_LENGTH,
            "QUEUE_BATCH_SIZE": self.QUEUE_BATCH_SIZE,
        }
        for key, value in positive.items():
            if value <= 0:
                raise ConfigurationError(f"{key} must be positive, got {value}", key)

        if not -1.0 <= self.RAG_SIMILARITY_THRESHOLD <= 1.0:
            raise ConfigurationError(
                "RAG_SIMILARITY_THRESHOLD must lie in [-1, 1]", "RAG_SIMILARITY_THRESHOLD"
            )

    def create_directories(self) -> None:
        """Create necessary directories."""
        self.SQLITE_DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
        self.LOG_DIRECTORY.mkdir(parents=True, exist_ok=True)

    def get_rate_limit(self, feature: str) -> int:
        """Daily limit for a feature, merged over the built-in defaults."""
        limits = {**DEFAULT_RATE_LIMITS, **self.RATE_LIMITS}
        if feature not in limits:
            raise ConfigurationError(f"No rate limit configured for '{feature}'", "RATE_LIMITS")
        return limits[feature]

    def get_warning_threshold(self, feature: str) -> int:
        thresholds = {**DEFAULT_WARNING_THRESHOLDS, **self.RATE_LIMIT_WARNING_THRESHOLDS}
        return thresholds.get(feature, 1)

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary with secrets masked."""
        data = self.model_dump()
        if data.get("EMBEDDING_API_KEY"):
            data["EMBEDDING_API_KEY"] = "***"
        return data

    def __repr__(self) -> str:
        """String representation of settings."""
        return (
            f"Settings(provider={self.EMBEDDING_PROVIDER}, model={self.EMBEDDING_MODEL}, "
            f"rag_enabled={self.RAG_ENABLED}, debug={self.DEBUG})"
        )
