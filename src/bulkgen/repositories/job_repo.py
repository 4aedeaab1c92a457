"""Bulk job repository."""

from datetime import datetime
from typing import Any

from sqlalchemy import desc, select

from bulkgen.db.base import utcnow
from bulkgen.db.models.bulk_job import BulkJobRow
from bulkgen.repositories.base import BaseRepository


class BulkJobRepository(BaseRepository[BulkJobRow]):
    model = BulkJobRow

    async def update_job(
        self, job_id: str, expected_version: int | None = None, **fields: Any
    ) -> bool:
        """Write ``fields`` to one job row, bumping its version.

        With ``expected_version`` the write only applies if the stored version
        still matches. Returns False when no row was updated.
        """
        criteria = [BulkJobRow.job_id == job_id]
        if expected_version is not None:
            criteria.append(BulkJobRow.version == expected_version)
        matched = await self.update_where(
            criteria,
            version=BulkJobRow.version + 1,
            updated_at=utcnow(),
            **fields,
        )
        return matched == 1

    async def list_for_owner(self, owner_id: str, since: datetime | None = None) -> list[BulkJobRow]:
        stmt = select(BulkJobRow).where(BulkJobRow.owner_id == owner_id)
        if since is not None:
            stmt = stmt.where(BulkJobRow.created_at >= since)
        stmt = stmt.order_by(desc(BulkJobRow.created_at))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_status(
        self, status: str, updated_before: datetime | None = None
    ) -> list[BulkJobRow]:
        if updated_before is None:
            return await self.filter_by(BulkJobRow.created_at, status=status)
        stmt = (
            select(BulkJobRow)
            .where(BulkJobRow.status == status, BulkJobRow.updated_at < updated_before)
            .order_by(BulkJobRow.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
