"""Pydantic models for bulk generation jobs and their items."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from bulkgen.models.enums import ItemStatus, JobStatus, Platform

SelectedSections = list[str] | dict[str, Any] | None


class ItemInput(BaseModel):
    """One product as submitted by the caller, before normalization."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    product_name: str | None = Field(
        None, validation_alias=AliasChoices("product_name", "productName", "name")
    )
    features: str | None = None
    platform: str | None = None


class BulkItem(BaseModel):
    """One unit of work within a job. The item list is the source of truth for progress."""

    model_config = ConfigDict(extra="forbid")

    id: str
    product_name: str
    features: str = ""
    platform: Platform = Platform.AMAZON
    status: ItemStatus = ItemStatus.PENDING
    output: str | None = None
    content_id: str | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class BulkJob(BaseModel):
    """Snapshot of one persisted job row."""

    model_config = ConfigDict(extra="forbid", from_attributes=True)

    job_id: str
    owner_id: str
    status: JobStatus
    total_count: int
    completed_count: int = 0
    failed_count: int = 0
    items: list[BulkItem]
    selected_sections: SelectedSections = None
    version: int = 1
    created_at: datetime
    updated_at: datetime

    def get_item(self, item_id: str) -> BulkItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def count_by_status(self) -> dict[ItemStatus, int]:
        counts = {status: 0 for status in ItemStatus}
        for item in self.items:
            counts[item.status] += 1
        return counts


def tally_items(items: list[BulkItem]) -> tuple[int, int]:
    """Return (completed_count, failed_count) for an item list."""
    completed = sum(1 for item in items if item.status == ItemStatus.COMPLETED)
    failed = sum(1 for item in items if item.status == ItemStatus.FAILED)
    return completed, failed


# --- API request / response models ---


class SubmitJobRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    owner_id: str | None = Field(None, validation_alias=AliasChoices("owner_id", "userId"))
    items: list[ItemInput] | None = Field(
        None, validation_alias=AliasChoices("items", "products")
    )
    selected_sections: SelectedSections = Field(
        None, validation_alias=AliasChoices("selected_sections", "selectedSections")
    )


class SubmitJobResponse(BaseModel):
    job_id: str
    item_count: int
    status: JobStatus
    message: str


class JobStatusResponse(BaseModel):
    job_id: str
    owner_id: str
    status: JobStatus
    total_count: int
    completed_count: int
    failed_count: int
    processing_count: int
    pending_count: int
    items: list[BulkItem]
    selected_sections: SelectedSections = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: BulkJob) -> "JobStatusResponse":
        counts = job.count_by_status()
        return cls(
            job_id=job.job_id,
            owner_id=job.owner_id,
            status=job.status,
            total_count=job.total_count,
            completed_count=job.completed_count,
            failed_count=job.failed_count,
            processing_count=counts[ItemStatus.PROCESSING],
            pending_count=counts[ItemStatus.PENDING],
            items=job.items,
            selected_sections=job.selected_sections,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class JobSummary(BaseModel):
    job_id: str
    status: JobStatus
    total_count: int
    completed_count: int
    failed_count: int
    created_at: datetime
    updated_at: datetime


class OwnerJobsResponse(BaseModel):
    owner_id: str
    active_jobs: list[JobSummary]
    recent_jobs: list[JobSummary]
    has_active_jobs: bool
