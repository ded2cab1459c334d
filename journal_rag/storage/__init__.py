"""Storage package.

This package provides storage implementations for the RAG pipeline:
- base: Abstract base classes defining the storage interfaces
- sqlite: SQLite-based embedding and counter storage
- redis: Redis-based counter storage for multi-process deployments
"""

from ..config.settings import Settings
from .base import CounterStorage, EmbeddingStorage
from .redis import RedisCounterStorage
from .sqlite import SQLiteCounterStorage, SQLiteEmbeddingStorage


def create_counter_storage(settings: Settings) -> CounterStorage:
    """Choose the counter backend based on settings."""
    if settings.REDIS_ENABLED:
        return RedisCounterStorage(settings)
    return SQLiteCounterStorage(settings)


__all__ = [
    "EmbeddingStorage",
    "CounterStorage",
    "SQLiteEmbeddingStorage",
    "SQLiteCounterStorage",
    "RedisCounterStorage",
    "create_counter_storage",
]
