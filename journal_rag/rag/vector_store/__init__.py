"""Vector store package.

- core: VectorStore coordinator with lifecycle management
- documents: store, replace, delete and lookup operations
- search: per-user cosine similarity search
- cache: per-user TTL cache of candidate records
"""

from .cache import UserEmbeddingCache
from .core import VectorStore

__all__ = ["VectorStore", "UserEmbeddingCache"]
