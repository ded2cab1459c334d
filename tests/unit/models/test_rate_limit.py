"""Tests for rate limit models and feature naming."""

from journal_rag.models.rate_limit import Feature, feature_name, feature_unit


def test_nine_features():
    assert len(Feature) == 9


def test_feature_names():
    assert feature_name("chat") == "chat messages"
    assert feature_name("rag_search") == "semantic search queries"
    assert feature_name("unknown_feature") == "unknown_feature"


def test_feature_units():
    assert feature_unit("chat") == "messages"
    assert feature_unit("rag_embedding") == "embeddings"
    assert feature_unit("tts") == "uses"
    assert feature_unit("unknown_feature") == "uses"
