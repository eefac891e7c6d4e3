"""Queue item model for featured image generation work."""

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from featured_image_helper.models.article import Base


class QueueStatus(str, Enum):
    """Status of a queued generation request."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES = (QueueStatus.PENDING.value, QueueStatus.PROCESSING.value)
TERMINAL_STATUSES = (QueueStatus.COMPLETED.value, QueueStatus.FAILED.value)

_ACTIVE_CLAUSE = "status IN ('pending', 'processing')"


class QueueItem(Base):
    """A request to generate a featured image for one subject."""

    __tablename__ = "queue_items"
    __table_args__ = (
        Index("ix_queue_items_status_priority", "status", "priority"),
        # At most one active item per subject
        Index(
            "uq_queue_items_active_subject",
            "subject_id",
            unique=True,
            postgresql_where=text(_ACTIVE_CLAUSE),
            sqlite_where=text(_ACTIVE_CLAUSE),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default=QueueStatus.PENDING.value)
    priority: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
