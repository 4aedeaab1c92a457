"""Drive one item through the generation service and record the outcome."""

import asyncio
import logging

from bulkgen.errors.exceptions import GenerationServiceError, GenerationTimeoutError
from bulkgen.models.bulk_job import BulkItem
from bulkgen.models.enums import ItemStatus
from bulkgen.services.generation_client import ContentGenerator
from bulkgen.workers.context import JobContext
from bulkgen.workers.status_updater import StatusUpdater

logger = logging.getLogger(__name__)


def truncate(message: str, limit: int) -> str:
    if len(message) <= limit:
        return message
    return message[: max(limit - 3, 0)] + "..."


class ItemProcessor:
    """Run the generation call for a single item under a fixed timeout.

    Every outcome (success, error response, timeout, any other exception) is
    written back as a terminal item status. Cancellation is not caught.
    """

    def __init__(
        self,
        generator: ContentGenerator,
        status_updater: StatusUpdater,
        *,
        timeout_seconds: float = 120.0,
        error_message_max_length: int = 500,
    ):
        self._generator = generator
        self._updater = status_updater
        self._timeout_seconds = timeout_seconds
        self._max_error_length = error_message_max_length

    async def process(self, ctx: JobContext, item: BulkItem) -> ItemStatus | None:
        """Run one item and return the status that ended up stored for it.

        None means the store could not be read after a dropped write.
        """
        marked = await self._updater.update_item_status(ctx.job_id, item.id, ItemStatus.PROCESSING)
        if not marked:
            logger.warning("Could not record processing state for %s, continuing", item.id)

        try:
            result = await asyncio.wait_for(
                self._generator.generate(
                    item,
                    owner_id=ctx.owner_id,
                    selected_sections=ctx.selected_sections,
                    auth=ctx.auth,
                ),
                timeout=self._timeout_seconds,
            )
        except TimeoutError:
            message = GenerationTimeoutError(self._timeout_seconds).message
            return await self._fail(ctx, item, message)
        except (GenerationServiceError, GenerationTimeoutError) as exc:
            return await self._fail(ctx, item, exc.message)
        except Exception as exc:  # noqa: BLE001
            return await self._fail(ctx, item, str(exc) or type(exc).__name__)

        stored = await self._updater.update_item_status(
            ctx.job_id,
            item.id,
            ItemStatus.COMPLETED,
            output=result.content,
            content_id=result.content_id,
        )
        if not stored:
            return await self._unrecorded(ctx, item, ItemStatus.COMPLETED)
        logger.info("Item %s (%s) completed", item.id, item.product_name)
        return ItemStatus.COMPLETED

    async def _fail(self, ctx: JobContext, item: BulkItem, message: str) -> ItemStatus | None:
        message = truncate(message, self._max_error_length)
        logger.warning("Item %s (%s) failed: %s", item.id, item.product_name, message)
        stored = await self._updater.update_item_status(
            ctx.job_id, item.id, ItemStatus.FAILED, error_message=message
        )
        if not stored:
            return await self._unrecorded(ctx, item, ItemStatus.FAILED)
        return ItemStatus.FAILED

    async def _unrecorded(
        self, ctx: JobContext, item: BulkItem, wanted: ItemStatus
    ) -> ItemStatus | None:
        actual = await self._updater.stored_status(ctx.job_id, item.id)
        logger.warning(
            "Item %s (%s) finished as %s but the store still has it %s",
            item.id, item.product_name, wanted, actual or "unreadable",
        )
        return actual
