"""Pytest configuration and shared fixtures for Journal RAG tests."""

import os
import tempfile
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Generator

import pytest
import pytest_asyncio

from journal_rag.config.settings import Settings
from journal_rag.rag.embeddings import EmbeddingManager
from journal_rag.rag.metrics import MetricsCollector
from journal_rag.rag.service import RAGService
from journal_rag.rag.vector_store import VectorStore
from journal_rag.ratelimit import RateLimiter
from tests.utils import KeywordEmbeddingProvider


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with temporary paths and no real delays."""
    return Settings(
        SERVER_HOST="127.0.0.1",
        SERVER_PORT=8001,
        DEBUG=True,
        LOG_DIRECTORY=temp_dir / "logs",

        SQLITE_DATABASE_PATH=temp_dir / "test_rag.db",
        REDIS_ENABLED=False,

        # Offline embeddings
        EMBEDDING_PROVIDER="hash",
        EMBEDDING_DIMENSIONS=64,
        EMBEDDING_REQUEST_TIMEOUT_SECONDS=2.0,
        EMBEDDING_RETRY_BASE_DELAY_SECONDS=0.0,
        EMBEDDING_BATCH_DELAY_SECONDS=0.0,

        RAG_ENABLED=True,
        RAG_SIMILARITY_THRESHOLD=0.7,
        RAG_MAX_RETRIEVED_DOCS=5,

        # Background loops effectively idle during tests
        QUEUE_DRAIN_INTERVAL_SECONDS=3600,
        QUEUE_RETRY_DELAY_SECONDS=3600,
        METRICS_LOG_INTERVAL_SECONDS=3600,

        MIGRATION_ITEM_DELAY_SECONDS=0.0,
        MIGRATION_USER_DELAY_SECONDS=0.0,
    )


@pytest.fixture
def metrics(test_settings: Settings) -> MetricsCollector:
    return MetricsCollector(test_settings)


@pytest.fixture
def keyword_provider(test_settings: Settings) -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider(test_settings)


@pytest_asyncio.fixture
async def embedding_manager(test_settings: Settings, metrics: MetricsCollector) -> AsyncGenerator[EmbeddingManager, None]:
    """Embedding manager backed by the hash provider."""
    manager = EmbeddingManager(test_settings, metrics)
    await manager.initialize()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def vector_store(test_settings: Settings, metrics: MetricsCollector) -> AsyncGenerator[VectorStore, None]:
    """Create and initialize a SQLite-backed vector store."""
    store = VectorStore(test_settings, metrics)
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def rate_limiter(test_settings: Settings) -> AsyncGenerator[RateLimiter, None]:
    limiter = RateLimiter(test_settings)
    await limiter.initialize()
    yield limiter
    await limiter.close()


@pytest_asyncio.fixture
async def rag_service(test_settings: Settings, keyword_provider: KeywordEmbeddingProvider) -> AsyncGenerator[RAGService, None]:
    """Fully wired service using the keyword provider."""
    metrics = MetricsCollector(test_settings)
    service = RAGService(
        test_settings,
        embedding_manager=EmbeddingManager(test_settings, metrics, provider=keyword_provider),
        metrics=metrics,
    )
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
def sample_export() -> Dict[str, Any]:
    """Historical content in the JSON export shape."""
    return {
        "users": {
            "user_1": {
                "journals": [
                    {
                        "id": "j1",
                        "title": "Morning run",
                        "content": "I ran 5k today",
                        "mood": "happy",
                        "tags": ["fitness"],
                        "created_at": "2025-03-01T08:00:00Z",
                    },
                    {
                        "id": "j2",
                        "title": "",
                        "content": "   ",
                        "created_at": "2025-03-02T08:00:00Z",
                    },
                ],
                "goals": [
                    {
                        "id": "g1",
                        "title": "Run a marathon",
                        "description": "Build up mileage over the spring",
                        "category": "fitness",
                        "status": "active",
                        "target_date": "2025-10-01",
                        "milestones": [
                            {"id": "m1", "title": "Run 10k", "completed": True, "order": 1},
                        ],
                        "progress_updates": [
                            {"id": "p1", "content": "Ran 8k without stopping", "created_at": "2025-03-03T18:00:00Z"},
                        ],
                    }
                ],
            },
            "user_2": {
                "journals": [
                    {"id": "j3", "title": "Work", "content": "Deadline stress at work"},
                ],
                "goals": [],
            },
            "user_3": {"journals": [], "goals": []},
        }
    }


@pytest.fixture(autouse=True)
def cleanup_env():
    """Clean up environment variables before/after tests."""
    original_env = dict(os.environ)

    yield

    os.environ.clear()
    os.environ.update(original_env)
