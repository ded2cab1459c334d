"""In-process background queue for embedding jobs."""

import asyncio
import itertools
import threading
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from ..config.logging import LoggerMixin
from ..config.settings import Settings
from ..core.exceptions import RateLimitExceededError
from ..models.rag import ContentToEmbed, EmbeddingJob, QueueStats
from ..utils.async_utils import cancel_task

JobProcessor = Callable[[ContentToEmbed], Awaitable[None]]


class EmbeddingJobQueue(LoggerMixin):
    """Accepts embed requests without blocking and drains them on a timer.

    Jobs live only in memory. A failing job is parked in the failed set and
    requeued after QUEUE_RETRY_DELAY_SECONDS with retry_count + 1; once
    retry_count reaches QUEUE_MAX_RETRY_ATTEMPTS the job is logged and
    dropped. A job denied by the daily quota is dropped without retry and
    counted separately.
    """

    def __init__(self, settings: Settings, processor: JobProcessor) -> None:
        self.settings = settings
        self.processor = processor

        self._queue: Deque[EmbeddingJob] = deque()
        self._failed: Dict[str, EmbeddingJob] = {}
        # Guards _queue and _failed; never held across an await
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)

        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None
        self._retry_task: Optional[asyncio.Task] = None
        self._completed = 0
        self._permanently_failed = 0
        self._rate_limited = 0

    @property
    def is_running(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def queue_embedding(self, content: ContentToEmbed) -> str:
        """Enqueue content and return the job id immediately."""
        timestamp_ms = int(time.time() * 1000)
        job_id = (
            f"{content.user_id}_{content.content_type.value}_{content.document_id}_"
            f"{timestamp_ms}_{next(self._sequence)}"
        )
        job = EmbeddingJob(id=job_id, content=content)

        with self._lock:
            self._queue.append(job)
            queue_size = len(self._queue)

        self.logger.debug(
            "Embedding queued",
            job_id=job_id,
            queue_size=queue_size,
            user_id=content.user_id,
            content_type=content.content_type.value,
        )
        return job_id

    async def start(self) -> None:
        """Start the periodic drain loop."""
        if self.is_running:
            return
        self._drain_task = asyncio.create_task(self._drain_loop(), name="rag-queue-drain")
        self.logger.info(
            "Embedding queue started",
            interval_seconds=self.settings.QUEUE_DRAIN_INTERVAL_SECONDS,
            batch_size=self.settings.QUEUE_BATCH_SIZE,
        )

    async def stop(self) -> None:
        """Stop background tasks. Pending jobs are dropped."""
        await cancel_task(self._drain_task)
        await cancel_task(self._retry_task)
        self._drain_task = None
        self._retry_task = None

        with self._lock:
            dropped = len(self._queue) + len(self._failed)
            self._queue.clear()
            self._failed.clear()

        if dropped:
            self.logger.warning("Embedding queue stopped with pending jobs", dropped=dropped)
        else:
            self.logger.info("Embedding queue stopped")

    async def _drain_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.QUEUE_DRAIN_INTERVAL_SECONDS)
            try:
                await self.drain()
            except Exception as e:
                self.logger.error("Embedding queue drain failed", error=str(e))

    def _pop_batch(self) -> List[EmbeddingJob]:
        with self._lock:
            count = min(self.settings.QUEUE_BATCH_SIZE, len(self._queue))
            return [self._queue.popleft() for _ in range(count)]

    async def drain(self) -> int:
        """Process up to QUEUE_BATCH_SIZE jobs. Returns how many succeeded.

        A drain that starts while another is running returns 0 immediately.
        """
        if self._draining:
            return 0

        self._draining = True
        succeeded = 0
        try:
            batch = self._pop_batch()
            if not batch:
                return 0

            self.logger.debug("Draining embedding queue", batch_size=len(batch))
            for job in batch:
                try:
                    await self.processor(job.content)
                    succeeded += 1
                    self._completed += 1
                except RateLimitExceededError as e:
                    self._handle_rate_limited(job, e)
                except Exception as e:
                    self._handle_failure(job, e)

            self.logger.info(
                "Embedding queue batch processed",
                processed=len(batch),
                succeeded=succeeded,
                remaining=self.queue_size,
            )
        finally:
            self._draining = False

        self._schedule_retry()
        return succeeded

    def _handle_rate_limited(self, job: EmbeddingJob, error: RateLimitExceededError) -> None:
        self._rate_limited += 1
        self.logger.warning(
            "Queued embedding denied by rate limit",
            job_id=job.id,
            user_id=job.content.user_id,
            document_id=job.content.document_id,
            feature=error.feature,
            limit=error.limit,
        )

    def _handle_failure(self, job: EmbeddingJob, error: Exception) -> None:
        if job.retry_count < self.settings.QUEUE_MAX_RETRY_ATTEMPTS:
            with self._lock:
                self._failed[job.id] = job
            self.logger.warning(
                "Embedding job failed, will retry",
                job_id=job.id,
                retry_count=job.retry_count,
                error=str(error),
            )
        else:
            self._permanently_failed += 1
            self.logger.error(
                "Embedding job permanently failed",
                job_id=job.id,
                user_id=job.content.user_id,
                document_id=job.content.document_id,
                retry_count=job.retry_count,
                error=str(error),
            )

    def _schedule_retry(self) -> None:
        with self._lock:
            has_failed = bool(self._failed)
        if not has_failed:
            return
        if self._retry_task is not None and not self._retry_task.done():
            return
        self._retry_task = asyncio.create_task(self._requeue_failed_later(), name="rag-queue-retry")

    async def _requeue_failed_later(self) -> None:
        await asyncio.sleep(self.settings.QUEUE_RETRY_DELAY_SECONDS)
        self.requeue_failed()

    def requeue_failed(self) -> int:
        """Move every failed job back onto the queue with retry_count + 1."""
        with self._lock:
            jobs = list(self._failed.values())
            self._failed.clear()
            for job in jobs:
                self._queue.append(job.model_copy(update={"retry_count": job.retry_count + 1}))

        if jobs:
            self.logger.info("Failed embedding jobs requeued", count=len(jobs))
        return len(jobs)

    @property
    def queue_size(self) -> int:
        with self._lock:
            return len(self._queue)

    def get_stats(self) -> QueueStats:
        with self._lock:
            queue_size = len(self._queue)
            failed = len(self._failed)
        return QueueStats(
            queue_size=queue_size,
            failed_jobs=failed,
            is_processing=self._draining,
            is_running=self.is_running,
            completed_jobs=self._completed,
            permanently_failed_jobs=self._permanently_failed,
            rate_limited_jobs=self._rate_limited,
        )
