"""Backfill embeddings for content created before the pipeline existed."""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional

from ..config.logging import LoggerMixin
from ..config.settings import Settings
from ..core.exceptions import MigrationError
from ..models.migration import (
    MigrationEstimate,
    MigrationProgress,
    MigrationReport,
    MigrationResult,
    SourceItem,
    UserEstimate,
)
from ..models.rag import ContentToEmbed
from ..rag.vector_store import VectorStore
from ..utils.date_utils import format_duration
from .extractors import extract_goal, extract_journal, extract_milestone, extract_progress_update
from .sources import ContentSource

EmbedFunc = Callable[[ContentToEmbed], Awaitable[bool]]
ProgressCallback = Callable[[MigrationProgress], None]

# Rough provider round trip used for dry-run projections
ESTIMATED_SECONDS_PER_EMBEDDING = 0.5


class MigrationService(LoggerMixin):
    """Walks a user's journals, goals, milestones and progress updates.

    ``embed_func`` stores one item and raises on failure; it returns False
    when the item was skipped.
    """

    def __init__(
        self,
        settings: Settings,
        source: ContentSource,
        embed_func: EmbedFunc,
        vector_store: VectorStore,
    ):
        self.settings = settings
        self.source = source
        self.embed_func = embed_func
        self.vector_store = vector_store

    async def get_all_user_ids(self) -> List[str]:
        try:
            user_ids = await self.source.get_all_user_ids()
        except Exception as e:
            self.logger.error("Failed to fetch user IDs", error=str(e))
            raise MigrationError(f"Failed to fetch user IDs: {e}")

        self.logger.info("Users found for migration", count=len(user_ids))
        return user_ids

    async def collect_items(self, user_id: str) -> List[SourceItem]:
        """All of a user's content in migration order: journals, goals, milestones, progress updates."""
        journals = [extract_journal(item) for item in await self.source.get_journals(user_id)]
        goal_items = await self.source.get_goals(user_id)
        goals = [extract_goal(item) for item in goal_items]

        milestones: List[SourceItem] = []
        progress_updates: List[SourceItem] = []
        for goal in goal_items:
            goal_id = str(goal["id"])
            milestones.extend(
                extract_milestone(item, goal_id)
                for item in await self.source.get_milestones(user_id, goal_id)
            )
            progress_updates.extend(
                extract_progress_update(item, goal_id)
                for item in await self.source.get_progress_updates(user_id, goal_id)
            )

        return journals + goals + milestones + progress_updates

    async def estimate_total_items(self, user_id: str) -> int:
        try:
            total = len(await self.collect_items(user_id))
        except Exception as e:
            self.logger.error("Failed to estimate total items", user_id=user_id, error=str(e))
            raise MigrationError(f"Failed to estimate items: {e}", user_id)

        self.logger.info("Migration items estimated", user_id=user_id, total=total)
        return total

    async def migrate_user_content(
        self,
        user_id: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> MigrationResult:
        """Embed every item of a user that has no embedding yet."""
        start = time.perf_counter()
        result = MigrationResult(user_id=user_id)
        self.logger.info("Starting content migration", user_id=user_id)

        try:
            items = await self.collect_items(user_id)
            existing = set(await self.vector_store.list_document_ids(user_id))
        except Exception as e:
            self.logger.error("Migration failed", user_id=user_id, error=str(e))
            raise MigrationError(f"Migration failed for user {user_id}: {e}", user_id)

        total = len(items)
        for index, item in enumerate(items):
            embedded = await self._migrate_item(user_id, item, existing, result)

            self._report_progress(user_id, item, index + 1, total, start, progress_callback)
            if embedded and index + 1 < total and self.settings.MIGRATION_ITEM_DELAY_SECONDS > 0:
                await asyncio.sleep(self.settings.MIGRATION_ITEM_DELAY_SECONDS)

        result.duration_ms = (time.perf_counter() - start) * 1000
        self.logger.info(
            "Migration complete",
            user_id=user_id,
            total_processed=result.total_processed,
            success_count=result.success_count,
            failed_count=result.failed_count,
            skipped_count=result.skipped_count,
            by_type=result.by_type,
            duration=format_duration(result.duration_ms / 1000),
        )
        return result

    async def _migrate_item(
        self,
        user_id: str,
        item: SourceItem,
        existing: set,
        result: MigrationResult,
    ) -> bool:
        """Process one item. Returns True when a provider call was made."""
        if item.document_id in existing:
            result.record_skip()
            return False

        if not item.text.strip():
            self.logger.warning(
                "Skipping item with empty text",
                content_type=item.content_type.value,
                document_id=item.document_id,
            )
            result.record_skip()
            return False

        content = ContentToEmbed(
            user_id=user_id,
            content_type=item.content_type,
            document_id=item.document_id,
            text=item.text,
            metadata=item.metadata,
            created_at=item.created_at,
        )
        try:
            stored = await self.embed_func(content)
        except Exception as e:
            result.record_failure(item, str(e))
            self.logger.error(
                "Item migration failed",
                user_id=user_id,
                content_type=item.content_type.value,
                document_id=item.document_id,
                error=str(e),
            )
            return True

        if stored:
            result.record_success(item.content_type)
            existing.add(item.document_id)
        else:
            result.record_skip()
        return True

    def _report_progress(
        self,
        user_id: str,
        item: SourceItem,
        processed: int,
        total: int,
        start: float,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        elapsed = time.perf_counter() - start
        rate = processed / elapsed if elapsed > 0 else 0.0
        remaining_seconds = (total - processed) / rate if rate > 0 else 0.0

        progress = MigrationProgress(
            user_id=user_id,
            processed=processed,
            total=total,
            current_type=item.content_type,
            estimated_remaining_seconds=remaining_seconds,
        )

        if processed == total or processed % 10 == 0:
            self.logger.info(
                "Migration progress",
                user_id=user_id,
                phase=item.content_type.value,
                processed=processed,
                total=total,
                percentage=f"{progress.percent:.2f}%",
                estimated_time_remaining=format_duration(remaining_seconds),
            )

        if progress_callback:
            try:
                progress_callback(progress)
            except Exception as e:
                self.logger.warning("Progress callback failed", user_id=user_id, error=str(e))

    async def migrate_all_users(
        self,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> MigrationReport:
        """Migrate every known user; one failing user does not stop the run."""
        start = time.perf_counter()
        user_ids = await self.get_all_user_ids()
        report = MigrationReport(users=len(user_ids))

        for index, user_id in enumerate(user_ids):
            try:
                report.add_result(await self.migrate_user_content(user_id, progress_callback))
            except Exception as e:
                self.logger.error("User migration failed", user_id=user_id, error=str(e))
                report.failed_users = {**report.failed_users, user_id: str(e)}

            if index + 1 < len(user_ids) and self.settings.MIGRATION_USER_DELAY_SECONDS > 0:
                await asyncio.sleep(self.settings.MIGRATION_USER_DELAY_SECONDS)

        report.duration_ms = (time.perf_counter() - start) * 1000
        self.logger.info(
            "Migration of all users complete",
            users=report.users,
            failed_users=len(report.failed_users),
            total_processed=report.total_processed,
            total_success=report.total_success,
            total_failed=report.total_failed,
            duration=format_duration(report.duration_ms / 1000),
        )
        return report

    async def dry_run(self, user_id: Optional[str] = None) -> MigrationEstimate:
        """Count what a migration would embed without calling the provider."""
        user_ids = [user_id] if user_id else await self.get_all_user_ids()

        estimates: List[UserEstimate] = []
        for uid in user_ids:
            items = await self.collect_items(uid)
            existing = set(await self.vector_store.list_document_ids(uid))

            counts = {}
            for item in items:
                counts[item.content_type.value] = counts.get(item.content_type.value, 0) + 1

            estimates.append(
                UserEstimate(
                    user_id=uid,
                    counts=counts,
                    already_embedded=sum(1 for item in items if item.document_id in existing),
                )
            )

        pending = sum(estimate.pending_items for estimate in estimates)
        duration = (
            pending * (ESTIMATED_SECONDS_PER_EMBEDDING + self.settings.MIGRATION_ITEM_DELAY_SECONDS)
            + max(0, len(user_ids) - 1) * self.settings.MIGRATION_USER_DELAY_SECONDS
        )

        estimate = MigrationEstimate(
            users=estimates,
            total_items=sum(estimate.total_items for estimate in estimates),
            pending_items=pending,
            estimated_duration_seconds=duration,
        )
        self.logger.info(
            "Migration dry run",
            users=len(estimates),
            total_items=estimate.total_items,
            pending_items=pending,
            estimated_duration=format_duration(duration),
        )
        return estimate
