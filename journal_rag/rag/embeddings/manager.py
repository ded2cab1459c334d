"""Embedding client that coordinates validation, retries and providers."""

import asyncio
import time
from typing import Any, List, Optional, Tuple

from ...config.logging import LoggerMixin
from ...config.settings import Settings
from ...core.exceptions import (
    EmbeddingError,
    EmbeddingValidationError,
    EmptyTextError,
    MissingTextError,
    NonStringTextError,
    ProviderTimeoutError,
    TextTooLongError,
)
from ...utils.async_utils import retry_with_backoff
from ..metrics import MetricsCollector
from .api import ApiEmbeddingProvider
from .base import EmbeddingProvider
from .hashing import HashEmbeddingProvider
from .local import LocalEmbeddingProvider

PROVIDERS = {
    "api": ApiEmbeddingProvider,
    "local": LocalEmbeddingProvider,
    "hash": HashEmbeddingProvider,
}


def validate_text(text: Any, max_length: int) -> str:
    """Raise the matching EmbeddingValidationError subclass for unusable input."""
    if text is None:
        raise MissingTextError()
    if not isinstance(text, str):
        raise NonStringTextError(type(text))
    if not text.strip():
        raise EmptyTextError()
    if len(text) > max_length:
        raise TextTooLongError(len(text), max_length)
    return text


class EmbeddingManager(LoggerMixin):
    """Validated, retried, time-bounded access to the configured provider."""

    def __init__(
        self,
        settings: Settings,
        metrics: Optional[MetricsCollector] = None,
        provider: Optional[EmbeddingProvider] = None,
    ):
        self.settings = settings
        self.metrics = metrics
        self.provider: Optional[EmbeddingProvider] = provider
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the embedding manager with appropriate provider."""
        try:
            if self.provider is None:
                provider_cls = PROVIDERS.get(self.settings.EMBEDDING_PROVIDER)
                if provider_cls is None:
                    raise EmbeddingError(
                        f"Unknown embedding provider: {self.settings.EMBEDDING_PROVIDER}"
                    )
                self.provider = provider_cls(self.settings)

            if not self.provider.is_initialized:
                await self.provider.initialize()
            self._initialized = True

            self.logger.info(
                "Embedding manager initialized",
                provider=self.provider.provider_name,
                model=self.settings.EMBEDDING_MODEL,
                dimensions=self.settings.EMBEDDING_DIMENSIONS,
            )

        except Exception as e:
            self.logger.error("Failed to initialize embedding manager", error=str(e))
            raise EmbeddingError(f"Embedding manager initialization failed: {e}")

    async def close(self) -> None:
        """Close the embedding manager."""
        if self.provider:
            await self.provider.close()
            self.provider = None

        self._initialized = False
        self.logger.info("Embedding manager closed")

    def _ensure_initialized(self) -> None:
        if not self._initialized or not self.provider:
            raise EmbeddingError("Embedding manager not initialized")

    async def generate_embedding(self, text: Any) -> List[float]:
        """Embed one text.

        Validation errors are raised before any provider call. Provider
        failures and timeouts are retried with exponential backoff and the
        last one is raised.
        """
        self._ensure_initialized()
        text = validate_text(text, self.settings.EMBEDDING_MAX_TEXT_LENGTH)

        start = time.perf_counter()
        try:
            embedding = await retry_with_backoff(
                lambda: self._embed_once([text]),
                max_attempts=self.settings.EMBEDDING_MAX_RETRIES,
                base_delay=self.settings.EMBEDDING_RETRY_BASE_DELAY_SECONDS,
                no_retry_on=(EmbeddingValidationError,),
                on_retry=self._log_retry,
            )
        except Exception as e:
            self._record(start, success=False)
            self.logger.error(
                "Embedding generation failed",
                attempts=self.settings.EMBEDDING_MAX_RETRIES,
                error=str(e),
            )
            if isinstance(e, EmbeddingError):
                raise
            raise EmbeddingError(f"Embedding generation failed: {e}", self.provider.provider_name)

        self._record(start, success=True)
        return embedding[0]

    async def generate_embeddings(self, texts: List[Any]) -> List[List[float]]:
        """Embed many texts; invalid or failing items are logged and skipped."""
        return [vector for _, vector in await self.generate_embeddings_indexed(texts)]

    async def generate_embeddings_indexed(self, texts: List[Any]) -> List[Tuple[int, List[float]]]:
        """Like ``generate_embeddings`` but pairs each vector with its input index."""
        self._ensure_initialized()

        valid: List[Tuple[int, str]] = []
        for index, text in enumerate(texts):
            try:
                valid.append((index, validate_text(text, self.settings.EMBEDDING_MAX_TEXT_LENGTH)))
            except EmbeddingValidationError as e:
                self.logger.warning("Skipping invalid text in batch", index=index, error=e.message)

        results: List[Tuple[int, List[float]]] = []
        batch_size = self.settings.EMBEDDING_BATCH_SIZE
        for offset in range(0, len(valid), batch_size):
            batch = valid[offset:offset + batch_size]
            results.extend(await self._embed_batch(batch))

        self.logger.info("Batch embedding complete", requested=len(texts), embedded=len(results))
        return results

    async def _embed_batch(self, batch: List[Tuple[int, str]]) -> List[Tuple[int, List[float]]]:
        start = time.perf_counter()
        try:
            vectors = await self._embed_once([text for _, text in batch])
        except Exception as e:
            # One attempt per item, no backoff: failing items are skipped
            self.logger.warning("Batch request failed, embedding items individually", size=len(batch), error=str(e))
            results = []
            for index, text in batch:
                item_start = time.perf_counter()
                try:
                    vector = (await self._embed_once([text]))[0]
                except Exception as item_error:
                    self._record(item_start, success=False)
                    self.logger.warning("Skipping text that failed to embed", index=index, error=str(item_error))
                    continue
                self._record(item_start, success=True)
                results.append((index, vector))
            return results

        per_item_ms = (time.perf_counter() - start) * 1000 / len(batch)
        if self.metrics:
            for _ in batch:
                self.metrics.record_embedding(per_item_ms, success=True)
        return [(index, vector) for (index, _), vector in zip(batch, vectors)]

    async def _embed_once(self, texts: List[str]) -> List[List[float]]:
        """One provider call bounded by the request timeout, with dimension check."""
        timeout = self.settings.EMBEDDING_REQUEST_TIMEOUT_SECONDS
        try:
            vectors = await asyncio.wait_for(self.provider.embed_texts(texts), timeout=timeout)
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(timeout, self.provider.provider_name)

        expected = self.settings.EMBEDDING_DIMENSIONS
        for vector in vectors:
            if len(vector) != expected:
                raise EmbeddingError(
                    f"Provider returned embedding of dimension {len(vector)}, expected {expected}",
                    self.provider.provider_name,
                )
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Provider returned {len(vectors)} embeddings for {len(texts)} texts",
                self.provider.provider_name,
            )
        return vectors

    def _log_retry(self, attempt: int, error: BaseException, delay: float) -> None:
        self.logger.warning(
            "Embedding attempt failed, retrying",
            attempt=attempt,
            max_attempts=self.settings.EMBEDDING_MAX_RETRIES,
            delay_seconds=delay,
            error=str(error),
        )

    def _record(self, start: float, success: bool) -> None:
        if self.metrics:
            self.metrics.record_embedding((time.perf_counter() - start) * 1000, success)
