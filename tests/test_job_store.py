"""Tests for the job store client and its conditional update."""

from datetime import datetime, timedelta, timezone

import pytest

from bulkgen.errors.exceptions import ConflictError, NotFoundError
from bulkgen.models.enums import ItemStatus, JobStatus


@pytest.mark.asyncio
async def test_create_and_get(store, create_job):
    job = await create_job(names=("A", "B"))
    fetched = await store.get(job.job_id)

    assert fetched is not None
    assert fetched.job_id == job.job_id
    assert fetched.owner_id == "owner-1"
    assert fetched.status == JobStatus.PROCESSING
    assert fetched.total_count == 2
    assert fetched.completed_count == 0
    assert fetched.failed_count == 0
    assert fetched.version == 1
    assert [i.product_name for i in fetched.items] == ["A", "B"]
    assert all(i.status == ItemStatus.PENDING for i in fetched.items)


@pytest.mark.asyncio
async def test_get_unknown_job_returns_none(store):
    assert await store.get("bulk_missing") is None


@pytest.mark.asyncio
async def test_conditional_update_bumps_version(store, create_job):
    job = await create_job()
    items = [i.model_copy(update={"status": ItemStatus.COMPLETED}) for i in job.items]

    updated = await store.update(
        job.job_id, expected_version=job.version, items=items, completed_count=3
    )

    assert updated.version == job.version + 1
    assert updated.completed_count == 3
    assert all(i.status == ItemStatus.COMPLETED for i in updated.items)


@pytest.mark.asyncio
async def test_stale_version_is_rejected(store, create_job):
    job = await create_job()
    await store.update(job.job_id, expected_version=job.version, failed_count=1)

    with pytest.raises(ConflictError):
        await store.update(job.job_id, expected_version=job.version, completed_count=3)

    current = await store.get(job.job_id)
    assert current.version == job.version + 1
    assert current.failed_count == 1
    assert current.completed_count == 0


@pytest.mark.asyncio
async def test_unconditional_update(store, create_job):
    job = await create_job()
    updated = await store.update(job.job_id, status=JobStatus.FAILED)
    assert updated.status == JobStatus.FAILED
    assert updated.version == 2


@pytest.mark.asyncio
async def test_update_unknown_job(store):
    with pytest.raises(NotFoundError):
        await store.update("bulk_missing", status=JobStatus.COMPLETED)
    with pytest.raises(NotFoundError):
        await store.update("bulk_missing", expected_version=1, status=JobStatus.COMPLETED)


@pytest.mark.asyncio
async def test_list_for_owner_newest_first_within_window(store, create_job):
    now = datetime.now(timezone.utc)
    old = await create_job(owner_id="owner-9", created_at=now - timedelta(days=3))
    earlier = await create_job(owner_id="owner-9", created_at=now - timedelta(hours=2))
    latest = await create_job(owner_id="owner-9", created_at=now - timedelta(minutes=1))
    await create_job(owner_id="someone-else")

    jobs = await store.list_for_owner("owner-9", since=now - timedelta(hours=24))
    assert [j.job_id for j in jobs] == [latest.job_id, earlier.job_id]

    everything = await store.list_for_owner("owner-9")
    assert old.job_id in [j.job_id for j in everything]


@pytest.mark.asyncio
async def test_list_by_status(store, create_job):
    running = await create_job()
    await create_job(status=JobStatus.COMPLETED)

    jobs = await store.list_by_status(JobStatus.PROCESSING)
    assert [j.job_id for j in jobs] == [running.job_id]


@pytest.mark.asyncio
async def test_list_by_status_untouched_since(store, create_job):
    now = datetime.now(timezone.utc)
    idle = await create_job(created_at=now - timedelta(minutes=30))
    touched = await create_job(created_at=now - timedelta(minutes=30))
    await create_job()
    await store.update(touched.job_id, completed_count=0)

    jobs = await store.list_by_status(JobStatus.PROCESSING, updated_before=now - timedelta(minutes=5))
    assert [j.job_id for j in jobs] == [idle.job_id]
