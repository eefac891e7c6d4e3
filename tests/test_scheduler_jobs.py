"""Tests for the scheduled queue and log cleanup jobs."""

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.main import (
    cleanup_logs,
    get_queue_interval_minutes,
    process_queue,
    sync_queue_interval,
)
from featured_image_helper.models.generation_log import GenerationLog, LogStatus
from featured_image_helper.services.batch_processor import BatchProcessor
from featured_image_helper.services.image_generation import ImageGenerationService
from featured_image_helper.services.image_queue import QueueStore
from featured_image_helper.services.options import QUEUE_INTERVAL, DatabaseOptionStore


@pytest.fixture
def job_session(test_db: AsyncSession) -> Iterator[MagicMock]:
    """Point the jobs' session factory at the test database."""
    with patch("featured_image_helper.main.async_session_factory") as mock_session_factory:
        mock_session_factory.return_value.__aenter__ = AsyncMock(return_value=test_db)
        mock_session_factory.return_value.__aexit__ = AsyncMock(return_value=None)
        yield mock_session_factory


class TestProcessQueue:
    """Tests for the process_queue job."""

    async def test_processes_pending_items(
        self, job_session: MagicMock, test_db: AsyncSession
    ) -> None:
        queue = QueueStore(test_db, DatabaseOptionStore(test_db))
        await queue.enqueue(1)
        await queue.enqueue(2)

        with patch.object(
            ImageGenerationService, "generate", AsyncMock(return_value=10)
        ) as mock_generate:
            await process_queue()

        assert mock_generate.await_count == 2
        stats = await queue.stats()
        assert stats["completed"] == 2
        assert stats["pending"] == 0

    async def test_empty_queue_is_a_noop(self, job_session: MagicMock) -> None:
        with patch.object(ImageGenerationService, "generate", AsyncMock()) as mock_generate:
            await process_queue()

        mock_generate.assert_not_awaited()

    async def test_unexpected_failure_does_not_escape(self, job_session: MagicMock) -> None:
        """The job must keep running on later ticks."""
        with patch.object(
            BatchProcessor, "run_once", AsyncMock(side_effect=RuntimeError("db went away"))
        ):
            await process_queue()


class TestCleanupLogs:
    async def test_removes_expired_entries(
        self, job_session: MagicMock, test_db: AsyncSession
    ) -> None:
        test_db.add_all(
            [
                GenerationLog(
                    detail="old",
                    status=LogStatus.INFO.value,
                    created_at=datetime.now(UTC) - timedelta(days=30),
                ),
                GenerationLog(detail="new", status=LogStatus.INFO.value),
            ]
        )
        await test_db.commit()

        await cleanup_logs()

        result = await test_db.execute(select(GenerationLog.detail))
        assert list(result.scalars().all()) == ["new"]
        count = await test_db.execute(select(func.count()).select_from(GenerationLog))
        assert count.scalar() == 1


class TestQueueInterval:
    async def test_default(self, job_session: MagicMock) -> None:
        assert await get_queue_interval_minutes() == 5

    async def test_from_option(self, job_session: MagicMock, test_db: AsyncSession) -> None:
        await DatabaseOptionStore(test_db).set(QUEUE_INTERVAL, 15)

        assert await get_queue_interval_minutes() == 15

    @pytest.mark.parametrize("value", [0, -3, "often"])
    async def test_invalid_option_falls_back(
        self, job_session: MagicMock, test_db: AsyncSession, value: object
    ) -> None:
        await DatabaseOptionStore(test_db).set(QUEUE_INTERVAL, value)

        assert await get_queue_interval_minutes() == 5


class TestSyncQueueInterval:
    """The queue job follows the queue_interval option without a restart."""

    @pytest.fixture
    def mock_scheduler(self) -> Iterator[MagicMock]:
        with patch("featured_image_helper.main.scheduler") as scheduler:
            scheduler.get_job.return_value.trigger.interval = timedelta(minutes=5)
            yield scheduler

    async def test_reschedules_when_option_changes(
        self, job_session: MagicMock, test_db: AsyncSession, mock_scheduler: MagicMock
    ) -> None:
        await DatabaseOptionStore(test_db).set(QUEUE_INTERVAL, 15)

        await sync_queue_interval()

        mock_scheduler.reschedule_job.assert_called_once_with(
            "process_queue", trigger="interval", minutes=15
        )

    async def test_unchanged_interval_keeps_job(
        self, job_session: MagicMock, mock_scheduler: MagicMock
    ) -> None:
        await sync_queue_interval()

        mock_scheduler.reschedule_job.assert_not_called()

    async def test_no_job_scheduled(
        self, job_session: MagicMock, mock_scheduler: MagicMock
    ) -> None:
        mock_scheduler.get_job.return_value = None

        await sync_queue_interval()

        mock_scheduler.reschedule_job.assert_not_called()

    async def test_queue_job_picks_up_new_interval(
        self, job_session: MagicMock, test_db: AsyncSession, mock_scheduler: MagicMock
    ) -> None:
        await DatabaseOptionStore(test_db).set(QUEUE_INTERVAL, 10)

        await process_queue()

        mock_scheduler.reschedule_job.assert_called_once_with(
            "process_queue", trigger="interval", minutes=10
        )
