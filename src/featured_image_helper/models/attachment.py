"""Media library records for stored image files."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from featured_image_helper.models.article import Base

if TYPE_CHECKING:
    from featured_image_helper.models.article import Article


class Attachment(Base):
    """A stored file attached to an article."""

    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    article_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=True, index=True
    )
    object_path: Mapped[str] = mapped_column(String(512), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    article: Mapped["Article"] = relationship("Article", back_populates="attachments")
    meta: Mapped[list["AttachmentMeta"]] = relationship(
        "AttachmentMeta", back_populates="attachment", cascade="all, delete-orphan"
    )


class AttachmentMeta(Base):
    """Key/value metadata written against an attachment."""

    __tablename__ = "attachment_meta"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    attachment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("attachments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(Text, default="")

    attachment: Mapped[Attachment] = relationship("Attachment", back_populates="meta")
