"""Write and lookup operations handler for the vector store."""

from typing import List, Optional, Sequence

from ...config.settings import Settings
from ...core.exceptions import VectorStoreError
from ...models.base import utc_now
from ...models.rag import ContentType, EmbeddingRecord
from ...storage.base import EmbeddingStorage
from .cache import UserEmbeddingCache


class DocumentOperations:
    """Handles storing, replacing, deleting and looking up embedding records."""

    def __init__(self, storage: EmbeddingStorage, cache: UserEmbeddingCache, settings: Settings, logger):
        self.storage = storage
        self.cache = cache
        self.settings = settings
        self.logger = logger

    async def store_embedding(self, record: EmbeddingRecord) -> EmbeddingRecord:
        """Store a record, replacing any existing one for the same document."""
        try:
            existing = await self.storage.get_by_document(record.user_id, record.document_id)
            if existing:
                record = record.model_copy(
                    update={"created_at": existing.created_at, "updated_at": utc_now()}
                )

            await self.storage.upsert(record)
            self.cache.invalidate(record.user_id)

            self.logger.debug(
                "Embedding stored",
                user_id=record.user_id,
                document_id=record.document_id,
                content_type=record.content_type.value,
                replaced=existing is not None,
            )
            return record

        except Exception as e:
            self.logger.error(
                "Failed to store embedding",
                user_id=record.user_id,
                document_id=record.document_id,
                error=str(e),
            )
            raise VectorStoreError(f"Failed to store embedding: {e}", record.document_id)

    async def store_embeddings(self, records: Sequence[EmbeddingRecord]) -> int:
        """Store several records in one transaction. Returns the number stored."""
        if not records:
            return 0

        try:
            await self.storage.upsert_many(records)
        except Exception as e:
            self.logger.error("Failed to store embeddings", count=len(records), error=str(e))
            raise VectorStoreError(f"Failed to store embeddings: {e}")

        for user_id in {record.user_id for record in records}:
            self.cache.invalidate(user_id)

        self.logger.debug("Embeddings stored", count=len(records))
        return len(records)

    async def delete_by_document(self, user_id: str, document_id: str) -> bool:
        """Delete a document's embedding. Returns False when nothing was stored."""
        try:
            removed = await self.storage.delete_by_document(user_id, document_id)
        except Exception as e:
            self.logger.error(
                "Failed to delete embedding",
                user_id=user_id,
                document_id=document_id,
                error=str(e),
            )
            raise VectorStoreError(f"Failed to delete embedding: {e}", document_id)

        self.cache.invalidate(user_id)
        self.logger.debug(
            "Embedding deleted" if removed else "No embedding to delete",
            user_id=user_id,
            document_id=document_id,
        )
        return removed > 0

    async def get_by_document(self, user_id: str, document_id: str) -> Optional[EmbeddingRecord]:
        try:
            return await self.storage.get_by_document(user_id, document_id)
        except Exception as e:
            raise VectorStoreError(f"Failed to get embedding: {e}", document_id)

    async def list_document_ids(
        self,
        user_id: str,
        content_types: Optional[Sequence[ContentType]] = None,
    ) -> List[str]:
        try:
            return await self.storage.list_document_ids(user_id, content_types)
        except Exception as e:
            raise VectorStoreError(f"Failed to list document ids: {e}")
