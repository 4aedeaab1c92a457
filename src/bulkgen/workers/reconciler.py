"""End-of-run pass that settles every item and closes the job."""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from bulkgen.errors.exceptions import ConflictError, NotFoundError
from bulkgen.models.bulk_job import BulkItem, BulkJob, tally_items
from bulkgen.models.enums import ItemStatus, JobStatus
from bulkgen.services.job_store import JobStore

logger = logging.getLogger(__name__)

_STUCK_MESSAGES = {
    ItemStatus.PROCESSING: "Marked as failed in verification - stuck in processing",
    ItemStatus.PENDING: "Marked as failed in verification - never started",
}


def _force_failed(item: BulkItem, message: str, now: datetime) -> BulkItem:
    return item.model_copy(
        update={"status": ItemStatus.FAILED, "error_message": message, "finished_at": now}
    )


class Reconciler:
    """Close jobs so that none stays ``processing`` forever.

    ``reconcile`` is the normal end of a run and always sets the job
    ``completed``; the item counters tell how many items actually succeeded.
    ``fail_job`` is the last resort when the orchestration itself broke.
    """

    def __init__(self, store: JobStore, *, conflict_retries: int = 10):
        self._store = store
        self._conflict_retries = conflict_retries

    async def is_open(self, job_id: str) -> bool:
        """Whether the job is still ``processing``. Unreadable counts as open."""
        try:
            job = await self._store.get(job_id)
        except SQLAlchemyError as exc:
            logger.warning("Could not read job %s status: %s", job_id, exc)
            return True
        return job is not None and job.status == JobStatus.PROCESSING

    async def reconcile(self, job_id: str) -> BulkJob | None:
        return await self._close(job_id, JobStatus.COMPLETED, reason=None)

    async def fail_job(self, job_id: str, reason: str) -> BulkJob | None:
        return await self._close(job_id, JobStatus.FAILED, reason=reason)

    async def _close(self, job_id: str, final_status: JobStatus, reason: str | None) -> BulkJob | None:
        for attempt in range(self._conflict_retries + 1):
            try:
                job = await self._store.get(job_id)
            except SQLAlchemyError:
                logger.exception("Final fetch of job %s failed, closing it unverified", job_id)
                await self._force_status(job_id, final_status)
                return None
            if job is None:
                logger.error("Job %s not found, nothing to close", job_id)
                return None
            if job.status != JobStatus.PROCESSING:
                logger.info("Job %s already %s", job_id, job.status)
                return job

            items = self._settle_items(job, reason)
            completed, failed = tally_items(items)
            # Last attempt overwrites unconditionally.
            expected = job.version if attempt < self._conflict_retries else None
            try:
                closed = await self._store.update(
                    job_id,
                    expected_version=expected,
                    items=items,
                    status=final_status,
                    completed_count=completed,
                    failed_count=failed,
                )
            except ConflictError:
                logger.debug("Job %s changed during close, retrying", job_id)
                continue
            except (SQLAlchemyError, NotFoundError):
                logger.exception("Final write of job %s failed, closing it unverified", job_id)
                await self._force_status(job_id, final_status)
                return None

            logger.info(
                "Job %s %s: %d completed, %d failed of %d",
                job_id, final_status, completed, failed, closed.total_count,
            )
            return closed
        return None

    @staticmethod
    def _settle_items(job: BulkJob, reason: str | None) -> list[BulkItem]:
        now = datetime.now(timezone.utc)
        settled = []
        for item in job.items:
            if item.status.is_terminal:
                settled.append(item)
                continue
            message = reason or _STUCK_MESSAGES[item.status]
            logger.warning("Item %s was %s at close, forcing failed", item.id, item.status)
            settled.append(_force_failed(item, message, now))
        return settled

    async def _force_status(self, job_id: str, status: JobStatus) -> None:
        try:
            await self._store.update(job_id, status=status)
        except (SQLAlchemyError, NotFoundError):
            logger.exception("Could not mark job %s %s", job_id, status)
