"""Per-user TTL cache of embedding records."""

import time
from typing import Dict, List, Optional, Tuple

from ...models.rag import EmbeddingRecord


class UserEmbeddingCache:
    """Holds each user's full record set until it expires or is invalidated.

    Every invalidation bumps the user's generation. A loader reads the
    generation before hitting storage and passes it to ``set``; if a write
    invalidated the user in the meantime the loaded records are discarded.
    """

    def __init__(self, ttl_seconds: float) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, List[EmbeddingRecord]]] = {}
        self._generations: Dict[str, int] = {}

    def get(self, user_id: str) -> Optional[List[EmbeddingRecord]]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        expires_at, records = entry
        if time.monotonic() >= expires_at:
            del self._entries[user_id]
            return None
        return records

    def generation(self, user_id: str) -> int:
        return self._generations.get(user_id, 0)

    def set(self, user_id: str, records: List[EmbeddingRecord], generation: Optional[int] = None) -> bool:
        """Cache ``records``; returns False when they are stale for ``generation``."""
        if generation is not None and generation != self.generation(user_id):
            return False
        self._entries[user_id] = (time.monotonic() + self.ttl_seconds, records)
        return True

    def invalidate(self, user_id: str) -> None:
        self._generations[user_id] = self.generation(user_id) + 1
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        for user_id in list(self._entries):
            self.invalidate(user_id)

    def purge_expired(self) -> int:
        now = time.monotonic()
        expired = [user_id for user_id, (expires_at, _) in self._entries.items() if now >= expires_at]
        for user_id in expired:
            del self._entries[user_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
