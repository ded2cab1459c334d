"""RAG pipeline: embeddings, vector store, retrieval, queue and facade."""

from .embeddings import EmbeddingManager
from .health import HealthChecker
from .metrics import MetricsCollector
from .queue import EmbeddingJobQueue
from .retrieval import ContextRetriever, format_context, rank_results, truncate_context
from .service import RAGService
from .vector_store import VectorStore

__all__ = [
    "RAGService",
    "EmbeddingManager",
    "VectorStore",
    "ContextRetriever",
    "EmbeddingJobQueue",
    "MetricsCollector",
    "HealthChecker",
    "format_context",
    "rank_results",
    "truncate_context",
]
