"""Embedding generation package.

- base: Abstract provider interface
- api: OpenAI-compatible HTTP provider
- local: sentence-transformers provider
- hashing: deterministic offline provider
- manager: validation, retry and timeout around the active provider
"""

from .api import ApiEmbeddingProvider
from .base import EmbeddingProvider
from .hashing import HashEmbeddingProvider
from .local import LocalEmbeddingProvider
from .manager import EmbeddingManager, validate_text

__all__ = [
    "EmbeddingProvider",
    "ApiEmbeddingProvider",
    "LocalEmbeddingProvider",
    "HashEmbeddingProvider",
    "EmbeddingManager",
    "validate_text",
]
