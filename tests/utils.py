"""Test utilities and helper functions for Journal RAG tests."""

import asyncio
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

from journal_rag.models.rag import ContentToEmbed, ContentType, EmbeddingRecord, SearchResult
from journal_rag.rag.embeddings.base import EmbeddingProvider

# Vocabulary per axis of the keyword provider; the last axis catches everything else
KEYWORD_AXES: Sequence[Sequence[str]] = (
    ("ran", "run", "running", "runs", "jog", "5k", "marathon"),
    ("sleep", "slept", "tired", "rest"),
    ("work", "project", "deadline", "meeting"),
    ("family", "mom", "dad", "sister"),
)


class KeywordEmbeddingProvider(EmbeddingProvider):
    """Deterministic provider whose axes are topic keywords.

    Texts about the same topic land on the same axis, so similarity between
    "I ran 5k today" and "running progress" is exactly 1.0.
    """

    def __init__(self, settings, fail_times: int = 0, delay: float = 0.0):
        super().__init__(settings)
        self.fail_times = fail_times
        self.delay = delay
        self.calls: List[List[str]] = []

    @property
    def provider_name(self) -> str:
        return "keyword"

    async def initialize(self) -> None:
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("provider unavailable")
        return [keyword_vector(text, self.settings.EMBEDDING_DIMENSIONS) for text in texts]


def keyword_vector(text: str, dimensions: int) -> List[float]:
    words = {word.strip(".,!?").lower() for word in text.split()}
    vector = [0.0] * dimensions
    for axis, vocabulary in enumerate(KEYWORD_AXES):
        if words & set(vocabulary):
            vector[axis] = 1.0
    if not any(vector):
        vector[len(KEYWORD_AXES)] = 1.0

    norm = math.sqrt(sum(value * value for value in vector))
    return [value / norm for value in vector]


def axis_vector(axis: int, dimensions: int) -> List[float]:
    vector = [0.0] * dimensions
    vector[axis] = 1.0
    return vector


def angled_vector(similarity: float, dimensions: int) -> List[float]:
    """Unit vector whose cosine similarity with axis 0 equals ``similarity``."""
    vector = [0.0] * dimensions
    vector[0] = similarity
    vector[1] = math.sqrt(max(0.0, 1.0 - similarity * similarity))
    return vector


class ContentTestHelper:
    """Helper class for building content and records."""

    @staticmethod
    def create_content(
        text: str = "Felt great after my morning run",
        user_id: str = "user_1",
        document_id: str = "journal_1",
        content_type: ContentType = ContentType.JOURNAL,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ContentToEmbed:
        return ContentToEmbed(
            user_id=user_id,
            content_type=content_type,
            document_id=document_id,
            text=text,
            metadata=metadata or {},
        )

    @staticmethod
    def create_record(
        embedding: List[float],
        user_id: str = "user_1",
        document_id: str = "journal_1",
        content_type: ContentType = ContentType.JOURNAL,
        text_snippet: str = "snippet",
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> EmbeddingRecord:
        record = EmbeddingRecord(
            user_id=user_id,
            content_type=content_type,
            document_id=document_id,
            embedding=embedding,
            text_snippet=text_snippet,
            metadata=metadata or {},
        )
        if created_at is not None:
            record.created_at = created_at
        return record

    @staticmethod
    def create_result(
        document_id: str,
        similarity: float,
        days_ago: float = 0,
        content_type: ContentType = ContentType.JOURNAL,
        text: str = "snippet",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SearchResult:
        base = datetime(2025, 3, 5, 12, 0, tzinfo=timezone.utc)
        return SearchResult(
            document_id=document_id,
            content_type=content_type,
            text_snippet=text,
            similarity_score=similarity,
            metadata=metadata or {},
            created_at=base - timedelta(days=days_ago),
        )


class MockFactory:
    """Factory for creating various mocks used in tests."""

    @staticmethod
    def create_aiohttp_session_mock(response_data: Any = None, status: int = 200, text: str = "") -> MagicMock:
        """Create a mock aiohttp session whose post() is an async context manager."""
        response_mock = AsyncMock()
        response_mock.status = status
        response_mock.json = AsyncMock(return_value=response_data)
        response_mock.text = AsyncMock(return_value=text)

        class MockAsyncContextManager:
            def __init__(self, response):
                self.response = response

            async def __aenter__(self):
                return self.response

            async def __aexit__(self, exc_type, exc_val, exc_tb):
                return None

        session_mock = MagicMock()
        session_mock.post = MagicMock(return_value=MockAsyncContextManager(response_mock))
        session_mock.close = AsyncMock()
        return session_mock

    @staticmethod
    def create_embedding_response(embeddings: List[List[float]]) -> Dict[str, Any]:
        """OpenAI-style embedding response, deliberately in reverse index order."""
        return {
            "data": [
                {"object": "embedding", "index": i, "embedding": embedding}
                for i, embedding in reversed(list(enumerate(embeddings)))
            ],
            "model": "text-embedding-004",
        }
