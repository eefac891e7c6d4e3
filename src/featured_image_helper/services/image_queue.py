"""Durable featured image generation queue."""

from collections.abc import Iterable
from datetime import UTC, datetime

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.models.queue_item import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    QueueItem,
    QueueStatus,
)
from featured_image_helper.services.interfaces import OptionStore
from featured_image_helper.services.options import QUEUE_PAUSED, as_bool, get_option

logger = structlog.get_logger()

DEFAULT_PRIORITY = 0


class QueueStore:
    """Queue of per-article generation requests.

    A subject has at most one active (pending or processing) item; a
    second enqueue while one is active is rejected.
    """

    def __init__(self, session: AsyncSession, options: OptionStore) -> None:
        self.session = session
        self.options = options

    async def _has_active_item(self, subject_id: int) -> bool:
        result = await self.session.execute(
            select(QueueItem.id)
            .where(QueueItem.subject_id == subject_id)
            .where(QueueItem.status.in_(ACTIVE_STATUSES))
            .limit(1)
        )
        return result.first() is not None

    async def enqueue(
        self, subject_id: int, priority: int = DEFAULT_PRIORITY
    ) -> QueueItem | None:
        """Add a pending item for a subject.

        Returns:
            The new item, or None when the subject already has an active item
        """
        if await self._has_active_item(subject_id):
            logger.debug("Enqueue rejected, subject already queued", subject_id=subject_id)
            return None

        item = QueueItem(
            subject_id=subject_id,
            status=QueueStatus.PENDING.value,
            priority=max(0, priority),
        )
        self.session.add(item)
        try:
            await self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent enqueue for the same subject
            await self.session.rollback()
            logger.debug("Enqueue rejected, subject already queued", subject_id=subject_id)
            return None

        await self.session.refresh(item)
        logger.info(
            "Queued article", item_id=item.id, subject_id=subject_id, priority=item.priority
        )
        return item

    async def enqueue_bulk(
        self, subject_ids: Iterable[int], priority: int = DEFAULT_PRIORITY
    ) -> int:
        """Enqueue many subjects; returns how many were actually added."""
        added = 0
        for subject_id in subject_ids:
            if await self.enqueue(subject_id, priority) is not None:
                added += 1
        return added

    async def dequeue_batch(self, limit: int) -> list[QueueItem]:
        """Pending items in processing order, highest priority first.

        Items are not claimed; the caller moves them to processing.
        """
        if limit <= 0:
            return []
        result = await self.session.execute(
            select(QueueItem)
            .where(QueueItem.status == QueueStatus.PENDING.value)
            .order_by(QueueItem.priority.desc(), QueueItem.created_at, QueueItem.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_pending(self, limit: int = 50) -> list[QueueItem]:
        return await self.dequeue_batch(limit)

    async def get(self, item_id: int) -> QueueItem | None:
        result = await self.session.execute(select(QueueItem).where(QueueItem.id == item_id))
        return result.scalar_one_or_none()

    async def items_for_subject(self, subject_id: int) -> list[QueueItem]:
        result = await self.session.execute(
            select(QueueItem)
            .where(QueueItem.subject_id == subject_id)
            .order_by(QueueItem.created_at.desc(), QueueItem.id.desc())
        )
        return list(result.scalars().all())

    async def set_status(self, item_id: int, status: QueueStatus) -> None:
        """Move an item to a new status and stamp processed_at."""
        await self.session.execute(
            update(QueueItem)
            .where(QueueItem.id == item_id)
            .values(status=status.value, processed_at=datetime.now(UTC))
        )
        await self.session.commit()
        logger.debug("Queue item status changed", item_id=item_id, status=status.value)

    async def stats(self) -> dict[str, int]:
        """Item counts per status plus a total."""
        result = await self.session.execute(
            select(QueueItem.status, func.count()).group_by(QueueItem.status)
        )
        counts = {status.value: 0 for status in QueueStatus}
        for status, count in result.all():
            counts[status] = count
        counts["total"] = sum(counts[status.value] for status in QueueStatus)
        return counts

    async def clear_terminal(self) -> int:
        """Remove completed and failed items."""
        result = await self.session.execute(
            delete(QueueItem).where(QueueItem.status.in_(TERMINAL_STATUSES))
        )
        await self.session.commit()
        removed = result.rowcount or 0
        logger.info("Cleared finished queue items", removed=removed)
        return removed

    async def clear_all(self) -> int:
        result = await self.session.execute(delete(QueueItem))
        await self.session.commit()
        removed = result.rowcount or 0
        logger.info("Cleared queue", removed=removed)
        return removed

    async def remove(self, item_id: int) -> bool:
        result = await self.session.execute(delete(QueueItem).where(QueueItem.id == item_id))
        await self.session.commit()
        return bool(result.rowcount)

    async def pause(self) -> None:
        await self.options.set(QUEUE_PAUSED, True)
        logger.info("Queue paused")

    async def resume(self) -> None:
        await self.options.set(QUEUE_PAUSED, False)
        logger.info("Queue resumed")

    async def is_paused(self) -> bool:
        return as_bool(await get_option(self.options, QUEUE_PAUSED))
