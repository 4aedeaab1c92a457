"""Fixed-size batch scheduling for a job's items."""

import asyncio
import logging
from collections.abc import Sequence

from bulkgen.logging_config import bind_job_context
from bulkgen.models.bulk_job import BulkItem
from bulkgen.workers.context import JobContext
from bulkgen.workers.item_processor import ItemProcessor
from bulkgen.workers.reconciler import Reconciler

logger = logging.getLogger(__name__)


def partition(items: Sequence[BulkItem], size: int) -> list[list[BulkItem]]:
    """Split items into consecutive batches of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchScheduler:
    """Runs a job's items batch by batch, then hands the job to the Reconciler.

    Items of one batch run concurrently; batches never overlap, so at most
    ``batch_size`` generation calls are in flight per job. Nothing is raised
    to the caller: item failures live in the job row, and an orchestration
    failure closes the job as ``failed``.
    """

    def __init__(
        self,
        processor: ItemProcessor,
        reconciler: Reconciler,
        *,
        batch_size: int = 3,
        pause_seconds: float = 0.5,
        batch_timeout_seconds: float | None = 300.0,
        reconcile_delay_seconds: float = 1.0,
    ):
        if batch_size < 1:
            raise ValueError("batch size must be at least 1")
        self.processor = processor
        self.reconciler = reconciler
        self.batch_size = batch_size
        self.pause_seconds = pause_seconds
        self.batch_timeout_seconds = batch_timeout_seconds
        self.reconcile_delay_seconds = reconcile_delay_seconds

    async def run(self, ctx: JobContext, items: Sequence[BulkItem]) -> None:
        bind_job_context(ctx.job_id, ctx.owner_id)
        try:
            batches = partition(items, self.batch_size)
            logger.info(
                "Job %s: %d items in %d batches of %d",
                ctx.job_id, len(items), len(batches), self.batch_size,
            )
            for number, batch in enumerate(batches, start=1):
                logger.info(
                    "Job %s: batch %d/%d (%s)",
                    ctx.job_id, number, len(batches), ", ".join(i.product_name for i in batch),
                )
                await self._run_batch(ctx, batch)
                if not await self.reconciler.is_open(ctx.job_id):
                    logger.warning(
                        "Job %s was closed elsewhere after batch %d/%d, stopping",
                        ctx.job_id, number, len(batches),
                    )
                    return
                if number < len(batches) and self.pause_seconds > 0:
                    await asyncio.sleep(self.pause_seconds)

            if self.reconcile_delay_seconds > 0:
                await asyncio.sleep(self.reconcile_delay_seconds)
            await self.reconciler.reconcile(ctx.job_id)
        except asyncio.CancelledError:
            logger.warning("Job %s interrupted before completion", ctx.job_id)
            await self.reconciler.fail_job(ctx.job_id, "Job interrupted before completion")
            raise
        except Exception:
            logger.exception("Orchestration of job %s failed", ctx.job_id)
            await self.reconciler.fail_job(ctx.job_id, "Job orchestration failed")

    async def _run_batch(self, ctx: JobContext, batch: list[BulkItem]) -> None:
        tasks = [
            asyncio.create_task(self.processor.process(ctx, item), name=f"item:{item.id}")
            for item in batch
        ]
        try:
            done, pending = await asyncio.wait(tasks, timeout=self.batch_timeout_seconds)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        if pending:
            logger.error(
                "Job %s: %d items still running after %ss, cancelled",
                ctx.job_id, len(pending), self.batch_timeout_seconds,
            )
            await asyncio.gather(*pending, return_exceptions=True)

        # Processors record their own failures; anything raised here is unexpected.
        errors = [
            task.exception() for task in done
            if not task.cancelled() and task.exception() is not None
        ]
        if errors:
            raise errors[0]
