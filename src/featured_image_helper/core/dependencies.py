"""Service wiring shared by the API, the scheduler jobs and the MCP server."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.core.config import settings
from featured_image_helper.core.database import get_session
from featured_image_helper.services.activity_log import ActivityLogger
from featured_image_helper.services.batch_processor import BatchProcessor
from featured_image_helper.services.content import DatabaseContentSource
from featured_image_helper.services.http_client import GeminiHttpClient
from featured_image_helper.services.image_generation import (
    ImageGenerationService,
    SubjectLocks,
)
from featured_image_helper.services.image_queue import QueueStore
from featured_image_helper.services.media import MediaLibrary
from featured_image_helper.services.notifications import EmailNotifier
from featured_image_helper.services.options import DatabaseOptionStore
from featured_image_helper.services.storage import StorageService

# Process-wide: generation for one article is serialised across requests and jobs
subject_locks = SubjectLocks()
storage_service = StorageService()
gemini_client = GeminiHttpClient()


@dataclass
class Services:
    """Per-session service graph."""

    session: AsyncSession
    options: DatabaseOptionStore
    content: DatabaseContentSource
    media: MediaLibrary
    activity_log: ActivityLogger
    queue: QueueStore
    generator: ImageGenerationService
    processor: BatchProcessor


def build_services(session: AsyncSession) -> Services:
    """Assemble the services for one database session."""
    options = DatabaseOptionStore(session)
    content = DatabaseContentSource(session)
    media = MediaLibrary(session, storage_service)
    activity_log = ActivityLogger(session, options)
    queue = QueueStore(session, options)
    generator = ImageGenerationService(
        content=content,
        media=media,
        options=options,
        activity_log=activity_log,
        client=gemini_client,
        app_settings=settings,
        locks=subject_locks,
    )
    processor = BatchProcessor(
        queue=queue,
        generator=generator,
        options=options,
        notifier=EmailNotifier(settings),
        app_settings=settings,
    )
    return Services(
        session=session,
        options=options,
        content=content,
        media=media,
        activity_log=activity_log,
        queue=queue,
        generator=generator,
        processor=processor,
    )


async def get_services(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AsyncIterator[Services]:
    """FastAPI dependency yielding the service graph for the request session."""
    yield build_services(session)
