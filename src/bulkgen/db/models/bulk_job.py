"""Bulk job table. One row per job; the items live in a JSON column."""

from typing import Any

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bulkgen.db.base import Base, TimestampMixin, VersionMixin


class BulkJobRow(Base, TimestampMixin, VersionMixin):
    __tablename__ = "bulk_jobs"

    job_id: Mapped[str] = mapped_column(String(200), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items: Mapped[list] = mapped_column(JSON, nullable=False)
    selected_sections: Mapped[Any] = mapped_column(JSON, nullable=True)
