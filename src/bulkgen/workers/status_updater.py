"""Read-modify-write of a single item's status inside the job row."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from bulkgen.errors.exceptions import ConflictError, NotFoundError
from bulkgen.models.bulk_job import BulkJob, tally_items
from bulkgen.models.enums import ItemStatus
from bulkgen.services.job_store import JobStore

logger = logging.getLogger(__name__)

_ITEM_FIELDS = {"output", "content_id", "error_message"}


class StatusUpdater:
    """Persist item status transitions with a compare-and-set write.

    A version conflict means another processor of the same job wrote first;
    the job is re-read and the change re-applied. Store failures are retried
    ``retries`` times with linear backoff, after which the update is dropped.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        retries: int = 2,
        backoff_seconds: float = 0.5,
        conflict_retries: int = 10,
    ):
        self._store = store
        self._retries = retries
        self._backoff_seconds = backoff_seconds
        self._conflict_retries = conflict_retries

    async def update_item_status(
        self, job_id: str, item_id: str, status: ItemStatus, **extra: Any
    ) -> bool:
        """Move one item to ``status``. Returns True once the change is stored."""
        unknown = set(extra) - _ITEM_FIELDS
        if unknown:
            raise ValueError(f"Unsupported item fields: {sorted(unknown)}")

        failures = 0
        conflicts = 0
        while True:
            try:
                job = await self._store.get(job_id)
                if job is None:
                    logger.warning("Job %s not found while updating item %s", job_id, item_id)
                    return False
                if not self._apply(job, item_id, status, extra):
                    return False
                completed, failed = tally_items(job.items)
                await self._store.update(
                    job_id,
                    expected_version=job.version,
                    items=job.items,
                    completed_count=completed,
                    failed_count=failed,
                )
                logger.debug("Item %s -> %s", item_id, status)
                return True
            except ConflictError:
                conflicts += 1
                if conflicts > self._conflict_retries:
                    logger.error(
                        "Item %s update to %s lost after %d version conflicts",
                        item_id, status, conflicts,
                    )
                    return False
                await asyncio.sleep(0)
            except NotFoundError:
                logger.warning("Job %s disappeared while updating item %s", job_id, item_id)
                return False
            except SQLAlchemyError as exc:
                failures += 1
                if failures > self._retries:
                    logger.error(
                        "Giving up on item %s update to %s after %d attempts: %s",
                        item_id, status, failures, exc,
                    )
                    return False
                delay = self._backoff_seconds * failures
                logger.warning(
                    "Store error updating item %s (attempt %d), retrying in %.2fs: %s",
                    item_id, failures, delay, exc,
                )
                await asyncio.sleep(delay)

    async def stored_status(self, job_id: str, item_id: str) -> ItemStatus | None:
        """Status of the item as currently persisted, or None if it cannot be read."""
        try:
            job = await self._store.get(job_id)
        except SQLAlchemyError as exc:
            logger.warning("Could not read job %s to check item %s: %s", job_id, item_id, exc)
            return None
        item = job.get_item(item_id) if job else None
        return item.status if item else None

    @staticmethod
    def _apply(job: BulkJob, item_id: str, status: ItemStatus, extra: dict[str, Any]) -> bool:
        for index, item in enumerate(job.items):
            if item.id != item_id:
                continue
            if item.status.is_terminal:
                logger.warning(
                    "Item %s already %s, ignoring transition to %s", item_id, item.status, status
                )
                return False
            changes: dict[str, Any] = {"status": status, **extra}
            now = datetime.now(timezone.utc)
            if status == ItemStatus.PROCESSING:
                changes["started_at"] = now
            elif status.is_terminal:
                changes["finished_at"] = now
            job.items[index] = item.model_copy(update=changes)
            return True
        logger.warning("Item %s not found in job %s", item_id, job.job_id)
        return False
