"""
Journal RAG - Retrieval-augmented context for personal journaling data.

This package provides the RAG pipeline behind a journaling application:
- Embedding generation with validation and retry-with-backoff
- A per-user vector store with cosine similarity search
- Context retrieval and prompt formatting
- An in-process asynchronous embedding job queue
- Per-user, per-feature daily rate limiting
- Backfill of historical content
"""

__version__ = "0.1.0"
__author__ = "Journal RAG Team"

from .config.settings import Settings
from .rag.service import RAGService

__all__ = ["RAGService", "Settings"]
