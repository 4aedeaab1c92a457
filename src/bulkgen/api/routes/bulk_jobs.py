"""Bulk generation job routes: submit, poll, list an owner's recent jobs."""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter

from bulkgen.config import settings
from bulkgen.dependencies import CallerAuth, Orchestrator, Store
from bulkgen.errors.exceptions import NotFoundError
from bulkgen.models.bulk_job import (
    JobStatusResponse,
    JobSummary,
    OwnerJobsResponse,
    SubmitJobRequest,
    SubmitJobResponse,
)
from bulkgen.models.enums import JobStatus

router = APIRouter(tags=["BulkJobs"])


@router.post("/bulk-jobs", status_code=202)
async def submit_bulk_job(
    body: SubmitJobRequest,
    orchestrator: Orchestrator,
    auth: CallerAuth,
) -> dict:
    """Create a job and start processing it in the background."""
    job = await orchestrator.submit(
        owner_id=body.owner_id,
        items=body.items,
        selected_sections=body.selected_sections,
        auth=auth,
    )
    return SubmitJobResponse(
        job_id=job.job_id,
        item_count=job.total_count,
        status=job.status,
        message=f"Background job started for {job.total_count} items",
    ).model_dump(mode="json")


@router.get("/bulk-jobs/{job_id}")
async def get_bulk_job(job_id: str, store: Store) -> dict:
    job = await store.get(job_id)
    if not job:
        raise NotFoundError("Bulk job", job_id)
    return JobStatusResponse.from_job(job).model_dump(mode="json")


@router.get("/owners/{owner_id}/bulk-jobs")
async def list_owner_jobs(owner_id: str, store: Store) -> dict:
    """Jobs created by one owner within the recent window, newest first."""
    since = datetime.now(timezone.utc) - timedelta(hours=settings.recent_jobs_window_hours)
    jobs = await store.list_for_owner(owner_id, since=since)
    summaries = [JobSummary.model_validate(job.model_dump()) for job in jobs]
    active = [s for s in summaries if s.status == JobStatus.PROCESSING]
    return OwnerJobsResponse(
        owner_id=owner_id,
        active_jobs=active,
        recent_jobs=summaries,
        has_active_jobs=bool(active),
    ).model_dump(mode="json")
