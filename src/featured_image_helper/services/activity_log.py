"""Persistent diagnostic log for generations and API events.

Generation entries are only written while debug logging is enabled and
the table is trimmed to a small rolling window after each one. API events
(connection tests, credential changes) are always written and only removed
by the age-based cleanup.
"""

from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.core.config import settings
from featured_image_helper.models.generation_log import GenerationLog, LogStatus
from featured_image_helper.services.interfaces import OptionStore
from featured_image_helper.services.options import (
    DEBUG_LOGGING_ENABLED,
    LOG_RETENTION_DAYS,
    as_bool,
    as_int,
    get_option,
)

logger = structlog.get_logger()

DEFAULT_RETENTION_DAYS = 7


class ActivityLogger:
    """Writes and prunes GenerationLog rows."""

    def __init__(
        self,
        session: AsyncSession,
        options: OptionStore,
        max_entries: int | None = None,
    ) -> None:
        self.session = session
        self.options = options
        self.max_entries = max_entries if max_entries is not None else settings.max_log_entries

    async def is_enabled(self) -> bool:
        return as_bool(await get_option(self.options, DEBUG_LOGGING_ENABLED))

    async def log(
        self,
        subject_id: int | None,
        detail: str,
        status: LogStatus,
        error_message: str = "",
        duration: float = 0.0,
    ) -> GenerationLog | None:
        """Record a generation attempt; no-op unless debug logging is on."""
        if not await self.is_enabled():
            return None

        entry = GenerationLog(
            subject_id=subject_id or None,
            detail=detail,
            status=status.value,
            error_message=error_message,
            duration_seconds=float(duration),
        )
        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)

        await self._trim()
        return entry

    async def log_api_event(
        self,
        event_type: str,
        message: str,
        status: LogStatus = LogStatus.INFO,
    ) -> GenerationLog:
        """Record a system-level API event regardless of the debug setting."""
        entry = GenerationLog(
            subject_id=None,
            detail=event_type,
            status=status.value,
            error_message=message,
            duration_seconds=0.0,
        )
        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)
        logger.info("api_event_logged", event_type=event_type, status=status.value)
        return entry

    async def _trim(self) -> int:
        """Delete the oldest rows beyond max_entries."""
        count_result = await self.session.execute(
            select(func.count()).select_from(GenerationLog)
        )
        count = count_result.scalar() or 0
        excess = count - self.max_entries
        if excess <= 0:
            return 0

        oldest = await self.session.execute(
            select(GenerationLog.id)
            .order_by(GenerationLog.created_at, GenerationLog.id)
            .limit(excess)
        )
        ids = list(oldest.scalars().all())
        await self.session.execute(delete(GenerationLog).where(GenerationLog.id.in_(ids)))
        await self.session.commit()
        return len(ids)

    async def cleanup_old(self, retention_days: int | None = None) -> int:
        """Delete entries older than the retention window.

        Returns:
            Number of entries removed
        """
        if retention_days is None:
            retention_days = as_int(
                await get_option(self.options, LOG_RETENTION_DAYS), DEFAULT_RETENTION_DAYS
            )
        cutoff = datetime.now(UTC) - timedelta(days=retention_days)
        result = await self.session.execute(
            delete(GenerationLog).where(GenerationLog.created_at < cutoff)
        )
        await self.session.commit()
        removed = result.rowcount or 0
        logger.info("Old logs cleaned up", retention_days=retention_days, removed=removed)
        return removed

    async def recent(self, limit: int = 3) -> list[GenerationLog]:
        result = await self.session.execute(
            select(GenerationLog)
            .order_by(GenerationLog.created_at.desc(), GenerationLog.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def for_subject(self, subject_id: int) -> list[GenerationLog]:
        result = await self.session.execute(
            select(GenerationLog)
            .where(GenerationLog.subject_id == subject_id)
            .order_by(GenerationLog.created_at.desc(), GenerationLog.id.desc())
        )
        return list(result.scalars().all())

    async def get(self, log_id: int) -> GenerationLog | None:
        result = await self.session.execute(
            select(GenerationLog).where(GenerationLog.id == log_id)
        )
        return result.scalar_one_or_none()

    async def clear(self) -> None:
        await self.session.execute(delete(GenerationLog))
        await self.session.commit()
