"""Tests for the historical content migration."""

import json
from datetime import datetime, timezone
from typing import Any, Dict
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from journal_rag.config.settings import Settings
from journal_rag.core.exceptions import EmbeddingError, MigrationError
from journal_rag.migration import InMemoryContentSource, JsonContentSource, MigrationService
from journal_rag.models.rag import ContentType
from journal_rag.rag.vector_store import VectorStore
from tests.utils import ContentTestHelper, axis_vector


class TestMigrationService:
    """Test per-user and all-user backfills."""

    @pytest.fixture
    def embed_func(self) -> AsyncMock:
        return AsyncMock(return_value=True)

    @pytest.fixture
    def service(self, test_settings: Settings, sample_export: Dict[str, Any], embed_func, vector_store: VectorStore):
        return MigrationService(test_settings, InMemoryContentSource(sample_export), embed_func, vector_store)

    async def test_collect_items_order(self, service: MigrationService):
        items = await service.collect_items("user_1")

        assert [item.document_id for item in items] == ["j1", "j2", "g1", "m1", "p1"]
        assert items[3].metadata["goal_id"] == "g1"

    async def test_estimate_total_items(self, service: MigrationService):
        assert await service.estimate_total_items("user_1") == 5

    async def test_migrate_user(self, service: MigrationService, embed_func):
        result = await service.migrate_user_content("user_1")

        assert result.total_processed == 5
        assert result.success_count == 4
        assert result.skipped_count == 1
        assert result.failed_count == 0
        assert result.by_type == {"journal": 1, "goal": 1, "milestone": 1, "progress_update": 1}
        embedded = [call.args[0] for call in embed_func.await_args_list]
        assert [content.document_id for content in embedded] == ["j1", "g1", "m1", "p1"]
        assert embedded[0].text == "Morning run\n\nI ran 5k today"
        assert embedded[0].metadata == {"mood": "happy", "tags": ["fitness"]}
        assert embedded[0].created_at == datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
        assert embedded[1].created_at is None

    async def test_already_embedded_items_skipped(self, service: MigrationService, embed_func, vector_store):
        await vector_store.store_embedding(
            ContentTestHelper.create_record(axis_vector(0, 64), document_id="j1")
        )

        result = await service.migrate_user_content("user_1")

        assert result.skipped_count == 2
        assert result.success_count == 3
        assert "j1" not in [call.args[0].document_id for call in embed_func.await_args_list]

    async def test_item_failures_recorded(self, service: MigrationService, embed_func):
        async def flaky(content):
            if content.content_type == ContentType.GOAL:
                raise EmbeddingError("provider down")
            return True

        embed_func.side_effect = flaky

        result = await service.migrate_user_content("user_1")

        assert result.failed_count == 1
        assert result.success_count == 3
        assert result.errors[0].document_id == "g1"
        assert "provider down" in result.errors[0].error

    async def test_progress_callback(self, service: MigrationService):
        progress = []

        await service.migrate_user_content("user_1", progress_callback=progress.append)

        assert [update.processed for update in progress] == [1, 2, 3, 4, 5]
        assert progress[-1].percent == 100.0
        assert progress[2].current_type == ContentType.GOAL

    async def test_failing_progress_callback_ignored(self, service: MigrationService):
        def explode(progress):
            raise RuntimeError("ui gone")

        result = await service.migrate_user_content("user_1", progress_callback=explode)

        assert result.success_count == 4

    async def test_source_failure_raises(self, test_settings, embed_func, vector_store):
        source = InMemoryContentSource()
        source.get_journals = AsyncMock(side_effect=RuntimeError("source offline"))
        service = MigrationService(test_settings, source, embed_func, vector_store)

        with pytest.raises(MigrationError):
            await service.migrate_user_content("user_1")

    async def test_migrate_all_users(self, service: MigrationService):
        report = await service.migrate_all_users()

        # user_3 has no content and is not listed
        assert report.users == 2
        assert report.total_success == 5
        assert [result.user_id for result in report.results] == ["user_1", "user_2"]

    async def test_migrate_all_users_survives_user_failure(self, service: MigrationService):
        original = service.collect_items

        async def collect(user_id):
            if user_id == "user_1":
                raise RuntimeError("corrupt export")
            return await original(user_id)

        service.collect_items = collect

        report = await service.migrate_all_users()

        assert list(report.failed_users) == ["user_1"]
        assert report.total_success == 1

    async def test_dry_run(self, service: MigrationService, embed_func, vector_store, test_settings):
        await vector_store.store_embedding(
            ContentTestHelper.create_record(axis_vector(0, 64), document_id="j1")
        )

        estimate = await service.dry_run("user_1")

        embed_func.assert_not_awaited()
        assert estimate.total_items == 5
        assert estimate.pending_items == 4
        assert estimate.users[0].counts == {"journal": 2, "goal": 1, "milestone": 1, "progress_update": 1}
        assert estimate.estimated_duration_seconds > 0


class TestContentSources:
    """Test the JSON export reader."""

    async def test_json_source(self, temp_dir, sample_export):
        path = temp_dir / "export.json"
        path.write_text(json.dumps(sample_export))
        source = JsonContentSource(path)

        assert await source.get_all_user_ids() == ["user_1", "user_2"]
        assert len(await source.get_milestones("user_1", "g1")) == 1
        assert await source.get_progress_updates("user_1", "missing") == []

    async def test_json_source_missing_file(self, temp_dir):
        source = JsonContentSource(temp_dir / "absent.json")

        with pytest.raises(MigrationError):
            await source.get_journals("user_1")
