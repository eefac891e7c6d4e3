"""Diagnostic log of generation attempts and API events."""

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from featured_image_helper.models.article import Base


class LogStatus(str, Enum):
    """Outcome recorded for a log entry."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class GenerationLog(Base):
    """One generation attempt or system-level API event.

    Entries without a subject_id are system events (connection tests,
    credential changes) rather than per-article generations.
    """

    __tablename__ = "generation_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subject_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    detail: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default=LogStatus.INFO.value)
    error_message: Mapped[str] = mapped_column(Text, default="")
    duration_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True
    )
