"""Media library: stored files recorded as article attachments."""

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.models.article import Article
from featured_image_helper.models.attachment import Attachment, AttachmentMeta
from featured_image_helper.services.exceptions import StorageError
from featured_image_helper.services.interfaces import StoredObject
from featured_image_helper.services.storage import StorageService

logger = structlog.get_logger()


class MediaLibrary:
    """MediaStore that uploads to object storage and records attachments."""

    def __init__(self, session: AsyncSession, storage: StorageService) -> None:
        self.session = session
        self.storage = storage

    async def store_bytes(self, filename: str, data: bytes, mime_type: str) -> StoredObject:
        return await self.storage.store_bytes(filename, data, mime_type)

    async def attach(
        self, stored: StoredObject, subject_id: int, mime_type: str, title: str
    ) -> int:
        """Record an uploaded object as an attachment of the article."""
        attachment = Attachment(
            article_id=subject_id,
            object_path=stored.path,
            url=stored.url,
            mime_type=mime_type,
            title=title,
        )
        try:
            self.session.add(attachment)
            await self.session.commit()
            await self.session.refresh(attachment)
        except SQLAlchemyError as e:
            await self.session.rollback()
            # Leave no orphaned object behind
            await self.storage.delete_object(stored.path)
            raise StorageError(f"Failed to record attachment: {e}") from e

        logger.info("Attachment created", attachment_id=attachment.id, subject_id=subject_id)
        return attachment.id

    async def set_as_featured(self, subject_id: int, attachment_id: int) -> None:
        try:
            await self.session.execute(
                update(Article)
                .where(Article.id == subject_id)
                .values(featured_attachment_id=attachment_id)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(f"Failed to set featured image: {e}") from e

    async def write_metadata(self, attachment_id: int, key: str, value: str) -> None:
        """Insert or replace a metadata value on an attachment."""
        try:
            result = await self.session.execute(
                select(AttachmentMeta).where(
                    AttachmentMeta.attachment_id == attachment_id,
                    AttachmentMeta.key == key,
                )
            )
            meta = result.scalar_one_or_none()
            if meta is None:
                self.session.add(
                    AttachmentMeta(attachment_id=attachment_id, key=key, value=value)
                )
            else:
                meta.value = value
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(f"Failed to write attachment metadata '{key}': {e}") from e

    async def get_metadata(self, attachment_id: int) -> dict[str, str]:
        result = await self.session.execute(
            select(AttachmentMeta).where(AttachmentMeta.attachment_id == attachment_id)
        )
        return {meta.key: meta.value for meta in result.scalars().all()}
