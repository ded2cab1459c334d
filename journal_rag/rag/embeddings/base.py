"""Provider interface shared by every embedding backend."""

from abc import ABC, abstractmethod
from typing import List

from ...config.logging import LoggerMixin
from ...config.settings import Settings
from ...core.exceptions import EmbeddingError


class EmbeddingProvider(ABC, LoggerMixin):
    """Turns a batch of already-validated texts into vectors.

    Providers do not validate, retry or time out on their own; the
    EmbeddingManager wraps every call with those concerns. A provider must
    return exactly one vector per input text, in input order, or raise
    EmbeddingError.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._initialized = False

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        pass

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise EmbeddingError(f"{self.provider_name} provider not initialized", self.provider_name)
