"""Tests for SQLite embedding and counter storage."""

import asyncio

import pytest
import pytest_asyncio

from journal_rag.config.settings import Settings
from journal_rag.core.exceptions import DatabaseError
from journal_rag.models.rag import ContentType
from journal_rag.storage.sqlite import SQLiteCounterStorage, SQLiteEmbeddingStorage
from journal_rag.utils.date_utils import local_day_key
from tests.utils import ContentTestHelper, axis_vector


class TestSQLiteEmbeddingStorage:
    """Test embedding persistence."""

    @pytest_asyncio.fixture
    async def storage(self, test_settings: Settings):
        storage = SQLiteEmbeddingStorage(test_settings)
        await storage.initialize()
        yield storage
        await storage.close()

    async def test_upsert_and_get(self, storage):
        record = ContentTestHelper.create_record(axis_vector(0, 4), metadata={"mood": "calm", "tags": ["a"]})

        await storage.upsert(record)
        loaded = await storage.get_by_document("user_1", "journal_1")

        assert loaded is not None
        assert loaded.id == record.id
        assert loaded.embedding == record.embedding
        assert loaded.metadata == {"mood": "calm", "tags": ["a"]}
        assert loaded.content_type == ContentType.JOURNAL
        assert loaded.created_at == record.created_at

    async def test_upsert_replaces_same_document(self, storage):
        await storage.upsert(ContentTestHelper.create_record(axis_vector(0, 4), text_snippet="old"))
        await storage.upsert(ContentTestHelper.create_record(axis_vector(1, 4), text_snippet="new"))

        records = await storage.list_by_user("user_1")

        assert len(records) == 1
        assert records[0].text_snippet == "new"

    async def test_same_document_id_for_different_users(self, storage):
        await storage.upsert(ContentTestHelper.create_record(axis_vector(0, 4), user_id="a"))
        await storage.upsert(ContentTestHelper.create_record(axis_vector(0, 4), user_id="b"))

        assert len(await storage.list_by_user("a")) == 1
        assert len(await storage.list_by_user("b")) == 1

    async def test_delete_by_document(self, storage):
        await storage.upsert(ContentTestHelper.create_record(axis_vector(0, 4)))

        assert await storage.delete_by_document("user_1", "journal_1") == 1
        assert await storage.delete_by_document("user_1", "journal_1") == 0
        assert await storage.get_by_document("user_1", "journal_1") is None

    async def test_list_document_ids_by_type(self, storage):
        await storage.upsert_many(
            [
                ContentTestHelper.create_record(axis_vector(0, 4), document_id="j1"),
                ContentTestHelper.create_record(
                    axis_vector(0, 4), document_id="g1", content_type=ContentType.GOAL
                ),
            ]
        )

        assert sorted(await storage.list_document_ids("user_1")) == ["g1", "j1"]
        assert await storage.list_document_ids("user_1", [ContentType.GOAL]) == ["g1"]

    async def test_count_by_type(self, storage):
        await storage.upsert_many(
            [
                ContentTestHelper.create_record(axis_vector(0, 4), document_id="j1"),
                ContentTestHelper.create_record(axis_vector(0, 4), document_id="j2", user_id="other"),
            ]
        )

        total, users, by_type = await storage.count_by_type()

        assert total == 2
        assert users == 2
        assert by_type == {"journal": 2}

    async def test_not_initialized(self, test_settings: Settings):
        storage = SQLiteEmbeddingStorage(test_settings)

        with pytest.raises(DatabaseError):
            await storage.list_by_user("user_1")


class TestSQLiteCounterStorage:
    """Test atomic daily counters."""

    @pytest_asyncio.fixture
    async def storage(self, test_settings: Settings):
        storage = SQLiteCounterStorage(test_settings)
        await storage.initialize()
        yield storage
        await storage.close()

    async def test_increment_until_limit(self, storage):
        outcomes = [await storage.increment_if_below("u", "tts", "2025-03-05", 2) for _ in range(3)]

        assert outcomes == [(True, 1), (True, 2), (False, 2)]
        assert await storage.get_count("u", "tts", "2025-03-05") == 2

    async def test_days_are_independent(self, storage):
        await storage.increment_if_below("u", "tts", "2025-03-05", 1)

        assert await storage.increment_if_below("u", "tts", "2025-03-06", 1) == (True, 1)

    async def test_concurrent_increments_never_exceed_limit(self, storage):
        outcomes = await asyncio.gather(
            *(storage.increment_if_below("u", "chat", "2025-03-05", 5) for _ in range(12))
        )

        assert sum(1 for allowed, _ in outcomes if allowed) == 5
        assert await storage.get_count("u", "chat", "2025-03-05") == 5

    async def test_purge_before(self, storage):
        await storage.increment_if_below("u", "chat", "2025-03-04", 5)
        await storage.increment_if_below("u", "chat", "2025-03-05", 5)

        assert await storage.purge_before("2025-03-05") == 1
        assert await storage.get_count("u", "chat", "2025-03-04") == 0
        assert await storage.get_count("u", "chat", "2025-03-05") == 1

    async def test_initialize_prunes_old_days(self, storage, test_settings: Settings):
        today = local_day_key()
        await storage.increment_if_below("u", "chat", "2020-01-01", 5)
        await storage.increment_if_below("u", "chat", today, 5)
        await storage.close()

        reopened = SQLiteCounterStorage(test_settings)
        await reopened.initialize()
        try:
            assert await reopened.get_count("u", "chat", "2020-01-01") == 0
            assert await reopened.get_count("u", "chat", today) == 1
        finally:
            await reopened.close()
