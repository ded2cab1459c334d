"""Backfill of embeddings for historical content."""

from .service import MigrationService
from .sources import ContentSource, InMemoryContentSource, JsonContentSource

__all__ = [
    "MigrationService",
    "ContentSource",
    "InMemoryContentSource",
    "JsonContentSource",
]
