"""Rate limit models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .base import RAGBaseModel


class Feature(str, Enum):
    """Features with a per-user daily quota."""

    CHAT = "chat"
    INSIGHTS = "insights"
    TTS = "tts"
    PROMPT_SUGGESTIONS = "prompt_suggestions"
    GOAL_SUGGESTIONS = "goal_suggestions"
    GOAL_INSIGHTS = "goal_insights"
    RAG_EMBEDDING = "rag_embedding"
    RAG_SEARCH = "rag_search"
    VOICE_COACH_SESSION = "voice_coach_session"


FEATURE_NAMES = {
    Feature.CHAT: "chat messages",
    Feature.INSIGHTS: "AI insights",
    Feature.TTS: "text-to-speech",
    Feature.PROMPT_SUGGESTIONS: "prompt suggestions",
    Feature.GOAL_SUGGESTIONS: "goal suggestions",
    Feature.GOAL_INSIGHTS: "goal insights",
    Feature.RAG_EMBEDDING: "content embedding generation",
    Feature.RAG_SEARCH: "semantic search queries",
    Feature.VOICE_COACH_SESSION: "voice coaching sessions",
}

FEATURE_UNITS = {
    Feature.CHAT: "messages",
    Feature.RAG_EMBEDDING: "embeddings",
    Feature.RAG_SEARCH: "searches",
    Feature.VOICE_COACH_SESSION: "sessions",
}


def feature_name(feature: str) -> str:
    """Human-readable name of a feature, falling back to the raw key."""
    try:
        return FEATURE_NAMES[Feature(feature)]
    except ValueError:
        return feature


def feature_unit(feature: str) -> str:
    try:
        return FEATURE_UNITS.get(Feature(feature), "uses")
    except ValueError:
        return "uses"


class UsageInfo(RAGBaseModel):
    """Outcome of a quota check."""

    allowed: bool
    remaining: int = Field(ge=0)
    limit: int = Field(ge=0)
    resets_at: datetime
    warning: Optional[str] = None
