"""Tests for per-user daily quotas."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from journal_rag.config.settings import Settings
from journal_rag.core.exceptions import ConfigurationError, DatabaseError, RateLimitExceededError
from journal_rag.rag.metrics import MetricsCollector
from journal_rag.ratelimit import RateLimiter
from journal_rag.ratelimit.limiter import FAIL_OPEN_REMAINING
from journal_rag.storage.base import CounterStorage


class TestRateLimiter:
    """Test quota accounting against SQLite counters."""

    async def test_chat_limit_of_twenty(self, rate_limiter: RateLimiter):
        for _ in range(20):
            usage = await rate_limiter.check_and_increment("user_1", "chat")
            assert usage.allowed

        denied = await rate_limiter.check_and_increment("user_1", "chat")

        assert denied.allowed is False
        assert denied.remaining == 0
        assert denied.limit == 20
        assert "daily limit of 20" in denied.warning

    async def test_remaining_decreases(self, rate_limiter: RateLimiter):
        first = await rate_limiter.check_and_increment("user_1", "insights")
        second = await rate_limiter.check_and_increment("user_1", "insights")

        assert (first.remaining, second.remaining) == (2, 1)

    async def test_warning_near_threshold(self, rate_limiter: RateLimiter):
        warnings = [
            (await rate_limiter.check_and_increment("user_1", "chat")).warning for _ in range(18)
        ]

        # Remaining 2 is the first value at the chat threshold
        assert all(warning is None for warning in warnings[:17])
        assert warnings[17] == "You have 2 messages remaining today."

    async def test_users_and_features_are_independent(self, rate_limiter: RateLimiter):
        for _ in range(5):
            await rate_limiter.check_and_increment("user_1", "tts")

        assert (await rate_limiter.check_and_increment("user_1", "tts")).allowed is False
        assert (await rate_limiter.check_and_increment("user_2", "tts")).allowed is True
        assert (await rate_limiter.check_and_increment("user_1", "chat")).allowed is True

    async def test_resets_at_next_local_midnight(self, rate_limiter: RateLimiter):
        usage = await rate_limiter.check_and_increment("user_1", "chat")
        now = datetime.now().astimezone()

        assert usage.resets_at > now
        assert (usage.resets_at.hour, usage.resets_at.minute, usage.resets_at.second) == (0, 0, 0)

    async def test_concurrent_requests_never_exceed_limit(self, rate_limiter: RateLimiter, test_settings: Settings):
        test_settings.RATE_LIMITS = {"goal_suggestions": 7}

        outcomes = await asyncio.gather(
            *(rate_limiter.check_and_increment("user_1", "goal_suggestions") for _ in range(25))
        )

        assert sum(1 for usage in outcomes if usage.allowed) == 7
        remaining = await rate_limiter.get_remaining_usage("user_1", "goal_suggestions")
        assert remaining.remaining == 0
        assert remaining.allowed is False

    async def test_enforce_raises(self, rate_limiter: RateLimiter, test_settings: Settings):
        test_settings.RATE_LIMITS = {"tts": 1}
        await rate_limiter.enforce("user_1", "tts")

        with pytest.raises(RateLimitExceededError) as exc_info:
            await rate_limiter.enforce("user_1", "tts")

        assert exc_info.value.limit == 1
        assert exc_info.value.to_dict()["status_code"] == 429

    async def test_get_remaining_does_not_consume(self, rate_limiter: RateLimiter):
        await rate_limiter.get_remaining_usage("user_1", "chat")
        usage = await rate_limiter.get_remaining_usage("user_1", "chat")

        assert usage.remaining == 20

    async def test_unknown_feature(self, rate_limiter: RateLimiter):
        with pytest.raises(ConfigurationError):
            await rate_limiter.check_and_increment("user_1", "teleport")

    async def test_metrics_recorded(self, test_settings: Settings):
        test_settings.RATE_LIMITS = {"tts": 1}
        metrics = MetricsCollector(test_settings)
        limiter = RateLimiter(test_settings, metrics=metrics)
        await limiter.initialize()
        try:
            await limiter.check_and_increment("user_1", "tts")
            await limiter.check_and_increment("user_1", "tts")
        finally:
            await limiter.close()

        quota = metrics.get_snapshot().quota
        assert quota.checks == {"tts": 2}
        assert quota.denials == {"tts": 1}


class TestFailOpen:
    """Counter store failures allow the request."""

    @pytest.fixture
    def broken_storage(self) -> AsyncMock:
        storage = AsyncMock(spec=CounterStorage)
        storage.increment_if_below.side_effect = DatabaseError("database is locked")
        storage.get_count.side_effect = DatabaseError("database is locked")
        return storage

    async def test_check_fails_open(self, test_settings: Settings, broken_storage):
        limiter = RateLimiter(test_settings, storage=broken_storage)
        await limiter.initialize()

        usage = await limiter.check_and_increment("user_1", "chat")

        assert usage.allowed is True
        assert usage.remaining == FAIL_OPEN_REMAINING
        assert usage.limit == 20

    async def test_enforce_does_not_raise(self, test_settings: Settings, broken_storage):
        limiter = RateLimiter(test_settings, storage=broken_storage)
        await limiter.initialize()

        usage = await limiter.enforce("user_1", "rag_search")

        assert usage.allowed is True

    async def test_remaining_fails_open(self, test_settings: Settings, broken_storage):
        limiter = RateLimiter(test_settings, storage=broken_storage)
        await limiter.initialize()

        usage = await limiter.get_remaining_usage("user_1", "chat")

        assert usage.allowed is True
        assert usage.remaining == FAIL_OPEN_REMAINING

    async def test_uninitialized_fails_open(self, test_settings: Settings):
        usage = await RateLimiter(test_settings).check_and_increment("user_1", "chat")

        assert usage.allowed is True
