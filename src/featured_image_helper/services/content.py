"""Article lookup for the generation pipeline."""

from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.crud import article as article_crud
from featured_image_helper.models.article import ArticleStatus
from featured_image_helper.services.interfaces import ArticleContent


class DatabaseContentSource:
    """ContentSource reading from the articles table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_content(self, subject_id: int) -> ArticleContent | None:
        article = await article_crud.get_article(self.session, subject_id)
        if article is None:
            return None
        return ArticleContent(
            subject_id=article.id,
            title=article.title,
            excerpt=article.excerpt or "",
            body=article.body or "",
            slug=article.slug,
            has_featured_image=article.featured_attachment_id is not None,
            published=article.status == ArticleStatus.PUBLISHED.value,
        )
