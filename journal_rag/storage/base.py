"""Abstract base classes for embedding and counter storage."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from ..config.logging import LoggerMixin
from ..models.rag import ContentType, EmbeddingRecord


class EmbeddingStorage(ABC, LoggerMixin):
    """Persists embedding records; at most one record per (user_id, document_id)."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the storage backend."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the storage backend."""
        pass

    @abstractmethod
    async def upsert(self, record: EmbeddingRecord) -> None:
        """Delete any record for the same (user_id, document_id) and insert this one.

        Both steps run in a single transaction.
        """
        pass

    @abstractmethod
    async def upsert_many(self, records: Sequence[EmbeddingRecord]) -> None:
        """Upsert several records in one transaction."""
        pass

    @abstractmethod
    async def delete_by_document(self, user_id: str, document_id: str) -> int:
        """Delete the record for a document. Returns number of rows removed."""
        pass

    @abstractmethod
    async def get_by_document(self, user_id: str, document_id: str) -> Optional[EmbeddingRecord]:
        """Fetch the record for a document, if any."""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[EmbeddingRecord]:
        """All records owned by a user."""
        pass

    @abstractmethod
    async def list_document_ids(
        self,
        user_id: str,
        content_types: Optional[Sequence[ContentType]] = None,
    ) -> List[str]:
        """Document IDs that have an embedding for a user."""
        pass

    @abstractmethod
    async def count_by_type(self) -> Tuple[int, int, Dict[str, int]]:
        """Return (total records, distinct users, records per content type)."""
        pass


class CounterStorage(ABC, LoggerMixin):
    """Per (user, feature, day) counters with atomic conditional increment."""

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def increment_if_below(
        self,
        user_id: str,
        feature: str,
        day: str,
        limit: int,
    ) -> Tuple[bool, int]:
        """Increment the counter only while it is below ``limit``.

        Returns ``(incremented, count_after)``. Concurrent callers on the same
        key never both observe the same starting count.
        """
        pass

    @abstractmethod
    async def get_count(self, user_id: str, feature: str, day: str) -> int:
        """Current counter value, 0 when absent."""
        pass
