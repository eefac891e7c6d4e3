"""Article model holding the minimal content fields image generation reads."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from featured_image_helper.models.attachment import Attachment


class Base(DeclarativeBase):
    """Base class for all models."""


class ArticleStatus(str, Enum):
    """Publication state of an article."""

    DRAFT = "draft"
    PUBLISHED = "published"


class Article(Base):
    """A content item that may need a featured image."""

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    excerpt: Mapped[str] = mapped_column(Text, default="")
    body: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default=ArticleStatus.DRAFT.value)

    # Set once an image has been generated and attached
    featured_attachment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    attachments: Mapped[list["Attachment"]] = relationship(
        "Attachment", back_populates="article", cascade="all, delete-orphan"
    )
