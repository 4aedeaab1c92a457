"""Job store client: create, fetch and conditionally update one job row.

Every call opens its own session and commits before returning, so background
tasks never share a session with the request that created the job.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bulkgen.db.models.bulk_job import BulkJobRow
from bulkgen.errors.exceptions import ConflictError, NotFoundError
from bulkgen.models.bulk_job import BulkItem, BulkJob
from bulkgen.repositories.job_repo import BulkJobRepository


def _to_columns(fields: dict[str, Any]) -> dict[str, Any]:
    columns = dict(fields)
    if "items" in columns:
        columns["items"] = [
            item.model_dump(mode="json") if isinstance(item, BulkItem) else item
            for item in columns["items"]
        ]
    if "status" in columns:
        columns["status"] = str(columns["status"])
    return columns


def _snapshot(row: BulkJobRow) -> BulkJob:
    return BulkJob.model_validate(row)


class JobStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, job: BulkJob) -> BulkJob:
        async with self._session_factory() as session:
            repo = BulkJobRepository(session)
            row = await repo.add(
                job_id=job.job_id,
                owner_id=job.owner_id,
                status=str(job.status),
                total_count=job.total_count,
                completed_count=job.completed_count,
                failed_count=job.failed_count,
                items=[item.model_dump(mode="json") for item in job.items],
                selected_sections=job.selected_sections,
                version=job.version,
                created_at=job.created_at,
                updated_at=job.updated_at,
            )
            await session.commit()
            return _snapshot(row)

    async def get(self, job_id: str) -> BulkJob | None:
        async with self._session_factory() as session:
            row = await BulkJobRepository(session).get(job_id)
            return _snapshot(row) if row else None

    async def update(self, job_id: str, expected_version: int | None = None, **fields: Any) -> BulkJob:
        """Write ``fields`` to the job and return the stored result.

        Raises:
            ConflictError: ``expected_version`` no longer matches the stored row.
            NotFoundError: the job does not exist.
        """
        async with self._session_factory() as session:
            repo = BulkJobRepository(session)
            applied = await repo.update_job(job_id, expected_version, **_to_columns(fields))
            if not applied:
                await session.rollback()
                if expected_version is not None and await repo.get(job_id) is not None:
                    raise ConflictError(
                        f"Bulk job '{job_id}' changed since version {expected_version}"
                    )
                raise NotFoundError("Bulk job", job_id)
            await session.commit()
            row = await repo.get(job_id)
            return _snapshot(row)

    async def list_for_owner(self, owner_id: str, since: datetime | None = None) -> list[BulkJob]:
        async with self._session_factory() as session:
            rows = await BulkJobRepository(session).list_for_owner(owner_id, since)
            return [_snapshot(row) for row in rows]

    async def list_by_status(
        self, status: str, updated_before: datetime | None = None
    ) -> list[BulkJob]:
        """Jobs in ``status``, optionally only those untouched since ``updated_before``."""
        async with self._session_factory() as session:
            rows = await BulkJobRepository(session).list_by_status(str(status), updated_before)
            return [_snapshot(row) for row in rows]
