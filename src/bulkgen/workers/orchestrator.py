"""Job orchestrator: accept a batch, persist the job, run it in the background."""

import asyncio
import logging
from collections.abc import Coroutine
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bulkgen.config import Settings
from bulkgen.models.bulk_job import BulkJob, ItemInput, SelectedSections
from bulkgen.models.enums import JobStatus
from bulkgen.services.credentials import ForwardedAuth
from bulkgen.services.generation_client import ContentGenerator, HttpGenerationClient
from bulkgen.services.id_generator import generate_job_id
from bulkgen.services.intake import build_items, validate_submission
from bulkgen.services.job_store import JobStore
from bulkgen.workers.context import JobContext
from bulkgen.workers.item_processor import ItemProcessor
from bulkgen.workers.reconciler import Reconciler
from bulkgen.workers.scheduler import BatchScheduler
from bulkgen.workers.status_updater import StatusUpdater

logger = logging.getLogger(__name__)


class JobTaskRegistry:
    """Handles of the background task running each job, keyed by job id."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task] = {}

    def start(self, job_id: str, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"bulk-job:{job_id}")
        self._tasks[job_id] = task

        def _forget(finished: asyncio.Task) -> None:
            if self._tasks.get(job_id) is finished:
                del self._tasks[job_id]

        task.add_done_callback(_forget)
        return task

    def get(self, job_id: str) -> asyncio.Task | None:
        return self._tasks.get(job_id)

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    def active_job_ids(self) -> list[str]:
        return [job_id for job_id, task in self._tasks.items() if not task.done()]

    async def wait(self, job_id: str, timeout: float | None = None) -> bool:
        """Wait for a job's task to finish. Returns False on timeout."""
        task = self._tasks.get(job_id)
        if task is None:
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return bool(done)

    async def shutdown(self) -> None:
        """Cancel every running job task and wait for them to settle."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Cancelling %d running bulk jobs", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)


class JobOrchestrator:
    """Entry point for bulk submissions.

    ``submit`` returns as soon as the job row exists; the batch scheduler
    runs as a task tracked by ``registry``.
    """

    def __init__(
        self,
        store: JobStore,
        scheduler: BatchScheduler,
        registry: JobTaskRegistry | None = None,
        *,
        max_items_per_job: int = 1000,
        orphan_after_seconds: float = 0.0,
    ):
        self.store = store
        self.scheduler = scheduler
        self.registry = registry or JobTaskRegistry()
        self.max_items_per_job = max_items_per_job
        self.orphan_after_seconds = orphan_after_seconds

    async def submit(
        self,
        owner_id: str | None,
        items: list[ItemInput] | None,
        selected_sections: SelectedSections = None,
        auth: ForwardedAuth | None = None,
    ) -> BulkJob:
        validate_submission(owner_id, items, self.max_items_per_job)
        owner_id = owner_id.strip()

        job_id = generate_job_id(owner_id)
        now = datetime.now(timezone.utc)
        job = await self.store.create(
            BulkJob(
                job_id=job_id,
                owner_id=owner_id,
                status=JobStatus.PROCESSING,
                total_count=len(items),
                items=build_items(job_id, items),
                selected_sections=selected_sections,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Created bulk job %s for owner %s with %d items", job_id, owner_id, len(items))

        ctx = JobContext(
            job_id=job_id,
            owner_id=owner_id,
            selected_sections=selected_sections,
            auth=auth or ForwardedAuth(),
        )
        self.registry.start(job_id, self.scheduler.run(ctx, job.items))
        return job

    async def recover_orphans(self) -> int:
        """Close abandoned ``processing`` jobs. Returns how many.

        Other processes may share the store, so a job is only abandoned when
        nothing has written to it for ``orphan_after_seconds``; a live worker
        touches its job at least once per batch.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.orphan_after_seconds)
        recovered = 0
        for job in await self.store.list_by_status(JobStatus.PROCESSING, updated_before=cutoff):
            if self.registry.is_running(job.job_id):
                continue
            logger.warning("Recovering orphaned job %s", job.job_id)
            await self.scheduler.reconciler.reconcile(job.job_id)
            recovered += 1
        return recovered


def build_orchestrator(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    generator: ContentGenerator | None = None,
) -> JobOrchestrator:
    """Wire store, updater, processor, scheduler and reconciler from settings."""
    store = JobStore(session_factory)
    updater = StatusUpdater(
        store,
        retries=settings.status_update_retries,
        backoff_seconds=settings.status_update_backoff_seconds,
        conflict_retries=settings.status_update_conflict_retries,
    )
    if generator is None:
        generator = HttpGenerationClient(
            settings.generation_service_url,
            user_agent=settings.generation_user_agent,
            timeout=settings.item_timeout_seconds,
        )
    processor = ItemProcessor(
        generator,
        updater,
        timeout_seconds=settings.item_timeout_seconds,
        error_message_max_length=settings.error_message_max_length,
    )
    reconciler = Reconciler(store, conflict_retries=settings.status_update_conflict_retries)
    scheduler = BatchScheduler(
        processor,
        reconciler,
        batch_size=settings.batch_size,
        pause_seconds=settings.batch_pause_seconds,
        batch_timeout_seconds=settings.batch_timeout_seconds,
        reconcile_delay_seconds=settings.reconcile_delay_seconds,
    )
    return JobOrchestrator(
        store,
        scheduler,
        max_items_per_job=settings.max_items_per_job,
        orphan_after_seconds=settings.orphan_after_seconds,
    )


async def run_recovery_loop(orchestrator: JobOrchestrator, interval_seconds: float) -> None:
    """Periodically close jobs whose worker died without finishing them."""
    logger.info("Orphan recovery started (interval=%ss)", interval_seconds)

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            recovered = await orchestrator.recover_orphans()
            if recovered:
                logger.warning("Recovered %d abandoned bulk jobs", recovered)
        except asyncio.CancelledError:
            logger.info("Orphan recovery stopped")
            break
        except Exception:
            logger.exception("Orphan recovery pass failed")
