"""Deterministic hash-based embedding provider.

Words and character trigrams are hashed into a fixed number of buckets and
the resulting count vector is L2-normalized. Texts sharing vocabulary get a
positive cosine similarity, which is enough for development setups, health
checks and tests that must not depend on a network service.
"""

import hashlib
import re
from typing import List

import numpy as np

from .base import EmbeddingProvider

_TOKEN_RE = re.compile(r"\w+")


class HashEmbeddingProvider(EmbeddingProvider):
    """Offline provider producing reproducible vectors of EMBEDDING_DIMENSIONS."""

    @property
    def provider_name(self) -> str:
        return "hash"

    async def initialize(self) -> None:
        self._initialized = True
        self.logger.info(
            "Hash embedding provider initialized",
            dimensions=self.settings.EMBEDDING_DIMENSIONS
        )

    async def close(self) -> None:
        self._initialized = False

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        self._ensure_initialized()
        return [self._embed(text) for text in texts]

    def _bucket(self, feature: str) -> int:
        digest = hashlib.md5(feature.encode("utf-8")).hexdigest()
        return int(digest[:8], 16) % self.settings.EMBEDDING_DIMENSIONS

    def _features(self, text: str) -> List[str]:
        features = []
        for token in _TOKEN_RE.findall(text.lower()):
            features.append(f"w:{token}")
            padded = f" {token} "
            features.extend(f"c:{padded[i:i + 3]}" for i in range(len(padded) - 2))
        return features

    def _embed(self, text: str) -> List[float]:
        vector = np.zeros(self.settings.EMBEDDING_DIMENSIONS, dtype=np.float64)
        for feature in self._features(text):
            vector[self._bucket(feature)] += 1.0

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()
