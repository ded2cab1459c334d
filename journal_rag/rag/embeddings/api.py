"""OpenAI-compatible ``/v1/embeddings`` provider over aiohttp."""

from typing import Any, Dict, List, Optional

import aiohttp

from ...core.exceptions import EmbeddingError
from .base import EmbeddingProvider


class ApiEmbeddingProvider(EmbeddingProvider):
    """Posts batches to ``{EMBEDDING_API_BASE}/v1/embeddings``."""

    def __init__(self, settings):
        super().__init__(settings)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def provider_name(self) -> str:
        return "api"

    @property
    def endpoint(self) -> str:
        return f"{(self.settings.EMBEDDING_API_BASE or '').rstrip('/')}/v1/embeddings"

    async def initialize(self) -> None:
        if not self.settings.EMBEDDING_API_BASE:
            raise EmbeddingError("EMBEDDING_API_BASE required for API provider", self.provider_name)

        # The manager enforces the per-call timeout; this one guards against hung sockets
        timeout = aiohttp.ClientTimeout(total=self.settings.EMBEDDING_REQUEST_TIMEOUT_SECONDS)
        self._session = aiohttp.ClientSession(timeout=timeout)
        self._initialized = True
        self.logger.info("API embedding provider initialized", endpoint=self.endpoint, model=self.settings.EMBEDDING_MODEL)

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
        self._initialized = False

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.EMBEDDING_API_KEY:
            headers["Authorization"] = f"Bearer {self.settings.EMBEDDING_API_KEY}"
        return headers

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        self._ensure_initialized()
        if not texts:
            return []

        payload = {
            "model": self.settings.EMBEDDING_MODEL,
            "input": texts,
            "dimensions": self.settings.EMBEDDING_DIMENSIONS,
        }
        try:
            async with self._session.post(self.endpoint, headers=self._headers(), json=payload) as response:
                if response.status != 200:
                    body = await response.text()
                    raise EmbeddingError(
                        f"API request failed: {response.status} - {body[:200]}", self.provider_name
                    )
                data = await response.json()
        except aiohttp.ClientError as e:
            raise EmbeddingError(f"API request error: {e}", self.provider_name)

        embeddings = self._parse(data)
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"API returned {len(embeddings)} embeddings for {len(texts)} texts",
                self.provider_name,
            )
        return embeddings

    def _parse(self, data: Any) -> List[List[float]]:
        """Read ``data[*].embedding`` ordered by ``index``."""
        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            return [[float(value) for value in item["embedding"]] for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed API response: {e}", self.provider_name)
