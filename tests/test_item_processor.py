"""Tests for per-item outcome classification."""

import asyncio

import pytest

from bulkgen.errors.exceptions import GenerationServiceError, GenerationTimeoutError
from bulkgen.models.bulk_job import BulkItem
from bulkgen.models.enums import ItemStatus
from bulkgen.services.credentials import ForwardedAuth
from bulkgen.workers.context import JobContext
from bulkgen.workers.item_processor import ItemProcessor, truncate


class RecordingUpdater:
    """Records status transitions instead of writing them."""

    def __init__(self, accept_processing: bool = True, accept_final: bool = True, stored=None):
        self.accept_processing = accept_processing
        self.accept_final = accept_final
        self.stored = stored
        self.calls = []

    async def update_item_status(self, job_id, item_id, status, **extra):
        self.calls.append((item_id, status, extra))
        if status == ItemStatus.PROCESSING:
            return self.accept_processing
        return self.accept_final

    async def stored_status(self, job_id, item_id):
        return self.stored


CTX = JobContext(
    job_id="bulk_job",
    owner_id="owner-1",
    selected_sections=["title", "bullets"],
    auth=ForwardedAuth(authorization="Bearer tok"),
)
ITEM = BulkItem(id="bulk_job_product_0", product_name="Lamp", features="LED")


@pytest.mark.asyncio
async def test_success_records_output(generator):
    updater = RecordingUpdater()
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    status = await processor.process(CTX, ITEM)

    assert status == ItemStatus.COMPLETED
    assert [c[1] for c in updater.calls] == [ItemStatus.PROCESSING, ItemStatus.COMPLETED]
    _, _, extra = updater.calls[-1]
    assert extra == {"output": "Generated listing for Lamp", "content_id": "cnt_Lamp"}
    assert generator.auth_seen[0].authorization == "Bearer tok"


@pytest.mark.asyncio
async def test_error_response_is_recorded(generator):
    generator.outcomes["Lamp"] = GenerationServiceError(403, "Usage limit exceeded")
    updater = RecordingUpdater()
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    status = await processor.process(CTX, ITEM)

    assert status == ItemStatus.FAILED
    _, final_status, extra = updater.calls[-1]
    assert final_status == ItemStatus.FAILED
    assert extra["error_message"] == "Generation service returned 403: Usage limit exceeded"


@pytest.mark.asyncio
async def test_timeout_is_recorded(generator):
    generator.delays["Lamp"] = 5
    updater = RecordingUpdater()
    processor = ItemProcessor(generator, updater, timeout_seconds=0.05)

    status = await processor.process(CTX, ITEM)

    assert status == ItemStatus.FAILED
    assert updater.calls[-1][2]["error_message"] == "Generation timed out after 0.05 seconds"
    # The aborted call released its slot
    assert generator.in_flight == 0


@pytest.mark.asyncio
async def test_transport_timeout_is_recorded(generator):
    generator.outcomes["Lamp"] = GenerationTimeoutError(30)
    updater = RecordingUpdater()
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    await processor.process(CTX, ITEM)

    assert updater.calls[-1][2]["error_message"] == "Generation timed out after 30 seconds"


@pytest.mark.asyncio
async def test_unexpected_exception_is_recorded(generator):
    generator.outcomes["Lamp"] = RuntimeError("connection reset")
    updater = RecordingUpdater()
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    status = await processor.process(CTX, ITEM)

    assert status == ItemStatus.FAILED
    assert updater.calls[-1][2]["error_message"] == "connection reset"


@pytest.mark.asyncio
async def test_exception_without_message_uses_type_name(generator):
    generator.outcomes["Lamp"] = ConnectionError()
    updater = RecordingUpdater()
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    await processor.process(CTX, ITEM)

    assert updater.calls[-1][2]["error_message"] == "ConnectionError"


@pytest.mark.asyncio
async def test_long_error_messages_are_truncated(generator):
    generator.outcomes["Lamp"] = GenerationServiceError(500, "x" * 1000)
    updater = RecordingUpdater()
    processor = ItemProcessor(generator, updater, timeout_seconds=1, error_message_max_length=100)

    await processor.process(CTX, ITEM)

    message = updater.calls[-1][2]["error_message"]
    assert len(message) == 100
    assert message.startswith("Generation service returned 500: xxx")
    assert message.endswith("...")


@pytest.mark.asyncio
async def test_continues_when_processing_state_is_not_stored(generator):
    updater = RecordingUpdater(accept_processing=False)
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    status = await processor.process(CTX, ITEM)

    assert status == ItemStatus.COMPLETED
    assert generator.calls == ["Lamp"]


@pytest.mark.asyncio
async def test_cancellation_propagates(generator):
    generator.delays["Lamp"] = 5
    updater = RecordingUpdater()
    processor = ItemProcessor(generator, updater, timeout_seconds=10)

    task = asyncio.create_task(processor.process(CTX, ITEM))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert [c[1] for c in updater.calls] == [ItemStatus.PROCESSING]


def test_truncate():
    assert truncate("short", 10) == "short"
    assert truncate("abcdefghijkl", 8) == "abcde..."


@pytest.mark.asyncio
async def test_refused_completion_reports_stored_status(generator):
    # The job was closed elsewhere and the item already failed there.
    updater = RecordingUpdater(accept_final=False, stored=ItemStatus.FAILED)
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    status = await processor.process(CTX, ITEM)

    assert status == ItemStatus.FAILED
    assert updater.calls[-1][1] == ItemStatus.COMPLETED


@pytest.mark.asyncio
async def test_dropped_failure_reports_stored_status(generator):
    generator.outcomes["Lamp"] = RuntimeError("boom")
    updater = RecordingUpdater(accept_final=False, stored=ItemStatus.PROCESSING)
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    assert await processor.process(CTX, ITEM) == ItemStatus.PROCESSING


@pytest.mark.asyncio
async def test_unreadable_store_after_dropped_write(generator):
    updater = RecordingUpdater(accept_final=False, stored=None)
    processor = ItemProcessor(generator, updater, timeout_seconds=1)

    assert await processor.process(CTX, ITEM) is None
