"""Per-user, per-feature daily quotas."""

from datetime import datetime
from typing import Optional

from ..config.logging import LoggerMixin
from ..config.settings import Settings
from ..core.exceptions import ConnectionError, DatabaseError, RateLimitExceededError
from ..models.rate_limit import UsageInfo, feature_name, feature_unit
from ..storage import create_counter_storage
from ..storage.base import CounterStorage
from ..utils.date_utils import local_day_key, next_local_midnight

# Remaining count reported when the counter store is unavailable
FAIL_OPEN_REMAINING = 1


class RateLimiter(LoggerMixin):
    """Atomic check-and-increment of daily counters keyed by local calendar day."""

    def __init__(
        self,
        settings: Settings,
        storage: Optional[CounterStorage] = None,
        metrics=None,
    ) -> None:
        self.settings = settings
        self.storage = storage
        self.metrics = metrics
        self._initialized = False

    async def initialize(self) -> None:
        if self.storage is None:
            self.storage = create_counter_storage(self.settings)
        await self.storage.initialize()
        self._initialized = True
        self.logger.info("Rate limiter initialized", backend=type(self.storage).__name__)

    async def close(self) -> None:
        if self.storage:
            await self.storage.close()
            self.storage = None
        self._initialized = False
        self.logger.info("Rate limiter closed")

    async def check_and_increment(self, user_id: str, feature: str) -> UsageInfo:
        """Consume one unit of quota if any is left.

        Unknown features raise ConfigurationError. Counter-store failures
        allow the request instead of raising.
        """
        limit = self.settings.get_rate_limit(feature)
        now = datetime.now().astimezone()
        resets_at = next_local_midnight(now)

        try:
            if not self.storage:
                raise ConnectionError("Counter storage not initialized", "rate_limiter")
            allowed, count = await self.storage.increment_if_below(
                user_id, feature, local_day_key(now), limit
            )
        except (DatabaseError, ConnectionError) as e:
            return self._fail_open(user_id, feature, limit, resets_at, e)

        if self.metrics:
            self.metrics.record_quota_check(feature, allowed)

        if not allowed:
            self.logger.info("Rate limit reached", user_id=user_id, feature=feature, limit=limit)
            return UsageInfo(
                allowed=False,
                remaining=0,
                limit=limit,
                resets_at=resets_at,
                warning=f"You have reached your daily limit of {limit} for {feature_name(feature)}.",
            )

        remaining = max(0, limit - count)
        return UsageInfo(
            allowed=True,
            remaining=remaining,
            limit=limit,
            resets_at=resets_at,
            warning=self._warning(feature, remaining),
        )

    async def enforce(self, user_id: str, feature: str) -> UsageInfo:
        """``check_and_increment`` that raises RateLimitExceededError when denied."""
        usage = await self.check_and_increment(user_id, feature)
        if not usage.allowed:
            raise RateLimitExceededError(feature, usage.remaining, usage.limit, usage.resets_at)
        return usage

    async def get_remaining_usage(self, user_id: str, feature: str) -> UsageInfo:
        """Report quota without consuming any."""
        limit = self.settings.get_rate_limit(feature)
        now = datetime.now().astimezone()
        resets_at = next_local_midnight(now)

        try:
            if not self.storage:
                raise ConnectionError("Counter storage not initialized", "rate_limiter")
            count = await self.storage.get_count(user_id, feature, local_day_key(now))
        except (DatabaseError, ConnectionError) as e:
            return self._fail_open(user_id, feature, limit, resets_at, e)

        remaining = max(0, limit - count)
        return UsageInfo(
            allowed=remaining > 0,
            remaining=remaining,
            limit=limit,
            resets_at=resets_at,
            warning=self._warning(feature, remaining) if remaining > 0 else None,
        )

    def _warning(self, feature: str, remaining: int) -> Optional[str]:
        if remaining <= self.settings.get_warning_threshold(feature):
            return f"You have {remaining} {feature_unit(feature)} remaining today."
        return None

    def _fail_open(
        self,
        user_id: str,
        feature: str,
        limit: int,
        resets_at: datetime,
        error: Exception,
    ) -> UsageInfo:
        self.logger.warning(
            "Counter store unavailable, allowing request",
            user_id=user_id,
            feature=feature,
            error=str(error),
        )
        return UsageInfo(
            allowed=True,
            remaining=FAIL_OPEN_REMAINING,
            limit=limit,
            resets_at=resets_at,
        )
