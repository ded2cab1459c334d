"""Tests for the HTTP server."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from journal_rag.config.settings import Settings
from journal_rag.core.exceptions import ConfigurationError, RateLimitExceededError
from journal_rag.core.server import JournalRAGServer
from journal_rag.models.base import utc_now
from journal_rag.models.metrics import HealthReport, HealthStatus


@pytest.fixture
def server(test_settings: Settings) -> JournalRAGServer:
    return JournalRAGServer(test_settings)


class TestJournalRAGServer:
    """Test endpoints and error mapping."""

    def test_invalid_settings_rejected(self, test_settings: Settings):
        test_settings.EMBEDDING_PROVIDER = "api"
        test_settings.EMBEDDING_API_BASE = None

        with pytest.raises(ConfigurationError):
            JournalRAGServer(test_settings)

    def test_liveness(self, server: JournalRAGServer):
        with TestClient(server.create_app()) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["rag_enabled"] is True

    def test_rag_health(self, server: JournalRAGServer):
        with TestClient(server.create_app()) as client:
            response = client.get("/rag/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert [stage["name"] for stage in body["stages"]] == [
            "embedding",
            "store_write",
            "store_query",
            "store_delete",
        ]

    def test_rag_health_unhealthy_is_503(self, server: JournalRAGServer):
        report = HealthReport(status=HealthStatus.UNHEALTHY, stages=[], checked_at=utc_now())

        with TestClient(server.create_app()) as client:
            with patch.object(server.service, "health_check", new=AsyncMock(return_value=report)):
                response = client.get("/rag/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_rag_metrics(self, server: JournalRAGServer):
        with TestClient(server.create_app()) as client:
            response = client.get("/rag/metrics")

        body = response.json()
        assert response.status_code == 200
        assert "embeddings" in body
        assert "search" in body
        assert body["queue"]["queue_size"] == 0

    def test_rate_limit_maps_to_429(self, server: JournalRAGServer):
        app = server.create_app()

        @app.get("/limited")
        async def limited():
            raise RateLimitExceededError("chat", 0, 20, utc_now())

        with TestClient(app) as client:
            response = client.get("/limited")

        assert response.status_code == 429
        assert response.json()["details"]["limit"] == 20

    def test_shutdown_closes_service(self, server: JournalRAGServer):
        with TestClient(server.create_app()):
            assert server.is_running

        assert server.is_running is False
