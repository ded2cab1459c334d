"""sentence-transformers provider running the model in-process."""

import asyncio
from typing import Any, List, Optional

from ...core.exceptions import EmbeddingError
from .base import EmbeddingProvider


class LocalEmbeddingProvider(EmbeddingProvider):
    """Encodes texts with a SentenceTransformer model on a worker thread.

    Requires the ``local`` extra. The model is loaded on initialize and its
    output dimension must match EMBEDDING_DIMENSIONS, otherwise stored vectors
    from different models would be compared against each other.
    """

    def __init__(self, settings):
        super().__init__(settings)
        self._model: Optional[Any] = None

    @property
    def provider_name(self) -> str:
        return "local"

    async def initialize(self) -> None:
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise EmbeddingError(
                f"sentence-transformers is required for the local provider "
                f"(pip install 'journal-rag[local]'): {e}",
                self.provider_name,
            )

        model_name = self.settings.EMBEDDING_MODEL
        try:
            self._model = await asyncio.to_thread(SentenceTransformer, model_name)
        except Exception as e:
            self.logger.error("Failed to load local model", model=model_name, error=str(e))
            raise EmbeddingError(f"Failed to load model {model_name}: {e}", self.provider_name)

        dimension = self._model.get_sentence_embedding_dimension()
        if dimension != self.settings.EMBEDDING_DIMENSIONS:
            self._model = None
            raise EmbeddingError(
                f"Model {model_name} produces {dimension}-dimensional vectors, "
                f"EMBEDDING_DIMENSIONS is {self.settings.EMBEDDING_DIMENSIONS}",
                self.provider_name,
            )

        self._initialized = True
        self.logger.info("Local embedding provider initialized", model=model_name, dimensions=dimension)

    async def close(self) -> None:
        self._model = None
        self._initialized = False

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        self._ensure_initialized()
        if not texts:
            return []

        try:
            encoded = await asyncio.to_thread(
                self._model.encode,
                texts,
                batch_size=self.settings.EMBEDDING_BATCH_SIZE,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingError(f"Local model failed on {len(texts)} texts: {e}", self.provider_name)

        return [row.tolist() for row in encoded]
