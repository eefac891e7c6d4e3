"""Batch processing of the featured image queue.

Each run takes up to ``batch_size`` pending items, generates images one
at a time and records the outcome on the item. When a run empties the
queue a single completion email is sent.
"""

from dataclasses import dataclass

import structlog

from featured_image_helper.core.config import Settings, settings
from featured_image_helper.models.queue_item import QueueStatus
from featured_image_helper.services.exceptions import GenerationError
from featured_image_helper.services.image_generation import ImageGenerationService
from featured_image_helper.services.image_queue import QueueStore
from featured_image_helper.services.interfaces import Notifier, OptionStore
from featured_image_helper.services.notifications import NotificationError
from featured_image_helper.services.options import (
    ADMIN_EMAIL,
    BATCH_SIZE,
    SEND_COMPLETION_EMAIL,
    as_bool,
    as_int,
    get_option,
)

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 5
COMPLETION_EMAIL_SUBJECT = "Featured Image Generation Complete"
COMPLETION_EMAIL_BODY = (
    "Featured image generation has completed.\n\n"
    "Completed: {completed}\n"
    "Failed: {failed}\n\n"
    "View details in the Featured Image Helper admin."
)


@dataclass
class BatchResult:
    """Outcome of one batch run."""

    processed: int = 0
    completed: int = 0
    failed: int = 0
    notified: bool = False
    skipped_reason: str | None = None


class BatchProcessor:
    """Drains the queue in bounded batches."""

    def __init__(
        self,
        queue: QueueStore,
        generator: ImageGenerationService,
        options: OptionStore,
        notifier: Notifier | None = None,
        app_settings: Settings | None = None,
        batch_size: int | None = None,
    ) -> None:
        self.queue = queue
        self.generator = generator
        self.options = options
        self.notifier = notifier
        self.settings = app_settings or settings
        self.batch_size = batch_size

    async def _batch_size(self) -> int:
        if self.batch_size is not None:
            return self.batch_size
        size = as_int(await get_option(self.options, BATCH_SIZE), DEFAULT_BATCH_SIZE)
        return size if size > 0 else DEFAULT_BATCH_SIZE

    async def run_once(self) -> BatchResult:
        """Process one batch of pending items."""
        if await self.queue.is_paused():
            logger.info("Queue paused, skipping batch")
            return BatchResult(skipped_reason="paused")

        items = await self.queue.dequeue_batch(await self._batch_size())
        if not items:
            return BatchResult(skipped_reason="empty")

        # A failed write rolls back the session and expires loaded items.
        batch = [(item.id, item.subject_id) for item in items]
        result = BatchResult()
        logger.info("Processing queue batch", items=len(batch))

        for item_id, subject_id in batch:
            await self.queue.set_status(item_id, QueueStatus.PROCESSING)
            result.processed += 1
            try:
                attachment_id = await self.generator.generate(subject_id)
            except GenerationError as e:
                await self.queue.set_status(item_id, QueueStatus.FAILED)
                result.failed += 1
                logger.warning(
                    "Queue item failed",
                    item_id=item_id,
                    subject_id=subject_id,
                    error=str(e),
                    error_code=e.code,
                )
                continue

            await self.queue.set_status(item_id, QueueStatus.COMPLETED)
            result.completed += 1
            logger.info(
                "Queue item completed",
                item_id=item_id,
                subject_id=subject_id,
                attachment_id=attachment_id,
            )

        result.notified = await self._notify_if_drained()
        logger.info(
            "Queue batch finished",
            processed=result.processed,
            completed=result.completed,
            failed=result.failed,
            notified=result.notified,
        )
        return result

    async def _notify_if_drained(self) -> bool:
        stats = await self.queue.stats()
        drained = stats["pending"] == 0 and stats["processing"] == 0 and stats["total"] > 0
        if not drained:
            return False
        if not as_bool(await get_option(self.options, SEND_COMPLETION_EMAIL)):
            return False
        if self.notifier is None:
            return False

        recipient = await get_option(self.options, ADMIN_EMAIL) or self.settings.admin_email
        if not recipient:
            logger.warning("Queue drained but no admin email is configured")
            return False

        body = COMPLETION_EMAIL_BODY.format(
            completed=stats[QueueStatus.COMPLETED.value],
            failed=stats[QueueStatus.FAILED.value],
        )
        try:
            await self.notifier.send_email(str(recipient), COMPLETION_EMAIL_SUBJECT, body)
        except NotificationError as e:
            logger.error("Completion email failed", error=str(e))
            return False
        return True
