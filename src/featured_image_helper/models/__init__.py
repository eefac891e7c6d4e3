"""Database models."""

from featured_image_helper.models.article import Article, ArticleStatus, Base
from featured_image_helper.models.attachment import Attachment, AttachmentMeta
from featured_image_helper.models.generation_log import GenerationLog, LogStatus
from featured_image_helper.models.option import Option
from featured_image_helper.models.queue_item import QueueItem, QueueStatus

__all__ = [
    "Article",
    "ArticleStatus",
    "Attachment",
    "AttachmentMeta",
    "Base",
    "GenerationLog",
    "LogStatus",
    "Option",
    "QueueItem",
    "QueueStatus",
]
