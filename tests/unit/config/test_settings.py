"""Tests for application settings."""

import pytest

from journal_rag.config.settings import Settings
from journal_rag.core.exceptions import ConfigurationError


class TestSettings:
    """Test defaults, overrides and runtime validation."""

    def test_default_rate_limits(self, test_settings: Settings):
        assert test_settings.get_rate_limit("chat") == 20
        assert test_settings.get_rate_limit("rag_embedding") == 100
        assert test_settings.get_rate_limit("rag_search") == 200
        assert test_settings.get_warning_threshold("chat") == 2

    def test_partial_rate_limit_override_keeps_defaults(self, test_settings: Settings):
        test_settings.RATE_LIMITS = {"chat": 3}

        assert test_settings.get_rate_limit("chat") == 3
        assert test_settings.get_rate_limit("tts") == 5

    def test_unknown_feature(self, test_settings: Settings):
        with pytest.raises(ConfigurationError):
            test_settings.get_rate_limit("teleport")

    def test_unknown_feature_threshold_defaults_to_one(self, test_settings: Settings):
        assert test_settings.get_warning_threshold("teleport") == 1

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("RAG_SIMILARITY_THRESHOLD", "0.55")
        monkeypatch.setenv("EMBEDDING_PROVIDER", "hash")

        settings = Settings(_env_file=None)

        assert settings.RAG_SIMILARITY_THRESHOLD == 0.55
        assert settings.EMBEDDING_PROVIDER == "hash"

    def test_validate_runtime_accepts_test_settings(self, test_settings: Settings):
        test_settings.validate_runtime()

    def test_api_provider_requires_base(self, test_settings: Settings):
        test_settings.EMBEDDING_PROVIDER = "api"
        test_settings.EMBEDDING_API_BASE = None

        with pytest.raises(ConfigurationError) as exc_info:
            test_settings.validate_runtime()

        assert exc_info.value.details["config_key"] == "EMBEDDING_API_BASE"

    def test_unknown_provider(self, test_settings: Settings):
        test_settings.EMBEDDING_PROVIDER = "carrier-pigeon"

        with pytest.raises(ConfigurationError):
            test_settings.validate_runtime()

    @pytest.mark.parametrize("key", ["EMBEDDING_DIMENSIONS", "QUEUE_BATCH_SIZE", "RAG_MAX_CONTEXT_LENGTH"])
    def test_non_positive_values_rejected(self, test_settings: Settings, key):
        setattr(test_settings, key, 0)

        with pytest.raises(ConfigurationError):
            test_settings.validate_runtime()

    def test_threshold_out_of_range(self, test_settings: Settings):
        test_settings.RAG_SIMILARITY_THRESHOLD = 1.5

        with pytest.raises(ConfigurationError):
            test_settings.validate_runtime()

    def test_create_directories(self, test_settings: Settings):
        test_settings.create_directories()

        assert test_settings.SQLITE_DATABASE_PATH.parent.exists()
        assert test_settings.LOG_DIRECTORY.exists()

    def test_to_dict_masks_api_key(self, test_settings: Settings):
        test_settings.EMBEDDING_API_KEY = "secret"

        assert test_settings.to_dict()["EMBEDDING_API_KEY"] == "***"
