"""Context retrieval and prompt formatting."""

import time
from typing import Dict, List, Optional

from ..config.logging import LoggerMixin
from ..config.settings import Settings
from ..core.exceptions import RateLimitExceededError
from ..models.rag import (
    ContentType,
    RetrievalOptions,
    RetrievedContext,
    RetrievedDocument,
    SearchQuery,
    SearchResult,
)
from ..models.rate_limit import Feature
from ..ratelimit import RateLimiter
from ..utils.date_utils import format_display_date, is_within_days
from .embeddings import EmbeddingManager
from .vector_store import VectorStore

# Similarity gap under which two results count as equally relevant
TIE_BREAK_EPSILON = 0.01

CONTEXT_HEADER = "=== RELEVANT CONTEXT FROM USER'S HISTORY ==="
CONTEXT_INTRO = (
    "The following information was retrieved based on semantic similarity "
    "to the current conversation:"
)
CONTEXT_END = "=== END OF RETRIEVED CONTEXT ==="
CONTEXT_FOOTER = (
    "Use the above context to provide more personalized and relevant responses. "
    "Reference specific entries when appropriate."
)
TRUNCATION_MARKER = "\n\n[Context truncated...]"


def rank_results(results: List[SearchResult]) -> List[SearchResult]:
    """Order by similarity, newest first among near-equal scores.

    Results are sorted by (similarity desc, created_at desc, document_id) and
    then split into bands: a band starts at its highest score and takes every
    following result within TIE_BREAK_EPSILON of it. Each band is reordered
    newest first. The output depends only on the set of results, not on
    their input order.
    """
    ordered = sorted(
        results,
        key=lambda r: (-r.similarity_score, -r.created_at.timestamp(), r.document_id),
    )

    ranked: List[SearchResult] = []
    band: List[SearchResult] = []
    for result in ordered:
        if band and band[0].similarity_score - result.similarity_score >= TIE_BREAK_EPSILON:
            ranked.extend(_newest_first(band))
            band = []
        band.append(result)
    ranked.extend(_newest_first(band))
    return ranked


def _newest_first(band: List[SearchResult]) -> List[SearchResult]:
    return sorted(band, key=lambda r: (-r.created_at.timestamp(), -r.similarity_score, r.document_id))


def truncate_context(text: str, max_length: int) -> str:
    """Fit text into ``max_length`` characters including the truncation marker."""
    if len(text) <= max_length:
        return text

    budget = max(0, max_length - len(TRUNCATION_MARKER))
    truncated = text[:budget]
    last_newline = truncated.rfind("\n")

    # Prefer a line boundary when it keeps at least 80% of the budget
    if last_newline > budget * 0.8:
        truncated = truncated[:last_newline]

    return (truncated + TRUNCATION_MARKER)[:max_length]


def _metadata_line(metadata: Dict) -> Optional[str]:
    parts = []
    if metadata.get("mood"):
        parts.append(f"Mood: {metadata['mood']}")
    tags = metadata.get("tags")
    if tags and isinstance(tags, (list, tuple)):
        parts.append(f"Tags: {', '.join(str(tag) for tag in tags)}")
    if metadata.get("category"):
        parts.append(f"Category: {metadata['category']}")
    if metadata.get("status"):
        parts.append(f"Status: {metadata['status']}")
    return " | ".join(parts) if parts else None


def format_context(context: RetrievedContext, max_length: int) -> str:
    """Render retrieved documents as a prompt block grouped by content type."""
    if not context.documents:
        return ""

    grouped: Dict[ContentType, List[RetrievedDocument]] = {}
    for document in context.documents:
        grouped.setdefault(document.type, []).append(document)

    lines = [CONTEXT_HEADER, CONTEXT_INTRO, ""]
    for content_type, documents in grouped.items():
        lines.append(f"--- {content_type.label} ---")

        items = []
        for index, document in enumerate(documents, start=1):
            item = (
                f"{index}. [Date: {format_display_date(document.created_at)}] "
                f"[Relevance: {round(document.similarity * 100)}%]"
            )
            metadata = _metadata_line(document.metadata)
            if metadata:
                item += f"\n  {metadata}"
            item += f"\n  Content: {document.content}"
            items.append(item)

        lines.append("\n\n".join(items))
        lines.append("")

    lines.extend([CONTEXT_END, "", CONTEXT_FOOTER])
    return truncate_context("\n".join(lines), max_length)


class ContextRetriever(LoggerMixin):
    """Turns a query into ranked documents from the user's own history."""

    def __init__(
        self,
        settings: Settings,
        embedding_manager: EmbeddingManager,
        vector_store: VectorStore,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.settings = settings
        self.embedding_manager = embedding_manager
        self.vector_store = vector_store
        self.rate_limiter = rate_limiter

    async def retrieve_context(
        self,
        query: str,
        options: RetrievalOptions,
        skip_rate_limit: bool = False,
    ) -> RetrievedContext:
        """Retrieve context for a query.

        Raises RateLimitExceededError when the search quota is used up; any
        other failure yields an empty context.
        """
        if not query or not query.strip():
            self.logger.warning("Empty query provided for context retrieval", user_id=options.user_id)
            return RetrievedContext.empty(query or "")

        if not skip_rate_limit and self.rate_limiter:
            usage = await self.rate_limiter.enforce(options.user_id, Feature.RAG_SEARCH.value)
            if usage.warning:
                self.logger.warning(
                    "Approaching rate limit for semantic search",
                    user_id=options.user_id,
                    remaining=usage.remaining,
                    warning=usage.warning,
                )

        start = time.perf_counter()
        try:
            query_embedding = await self.embedding_manager.generate_embedding(query)
            results = await self.vector_store.search_similar(
                SearchQuery(
                    user_id=options.user_id,
                    query_embedding=query_embedding,
                    content_types=options.content_types,
                    limit=options.limit or self.settings.RAG_MAX_RETRIEVED_DOCS,
                    similarity_threshold=(
                        options.similarity_threshold
                        if options.similarity_threshold is not None
                        else self.settings.RAG_SIMILARITY_THRESHOLD
                    ),
                )
            )
        except RateLimitExceededError:
            raise
        except Exception as e:
            self.logger.error(
                "Context retrieval failed, returning empty context",
                user_id=options.user_id,
                error=str(e),
            )
            return RetrievedContext.empty(query)

        if options.include_recent and options.recent_days:
            results = [result for result in results if is_within_days(result.created_at, options.recent_days)]

        documents = [RetrievedDocument.from_search_result(result) for result in rank_results(results)]

        self.logger.info(
            "Context retrieved",
            user_id=options.user_id,
            query_length=len(query),
            documents_found=len(documents),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            rate_limit_skipped=skip_rate_limit,
        )
        return RetrievedContext(documents=documents, total_found=len(documents), query=query)

    def format_context_for_ai(self, context: RetrievedContext) -> str:
        return format_context(context, self.settings.RAG_MAX_CONTEXT_LENGTH)
