"""CRUD operations for Article model."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.models.article import Article, ArticleStatus


async def create_article(
    db: AsyncSession,
    title: str,
    slug: str,
    excerpt: str = "",
    body: str = "",
    status: ArticleStatus = ArticleStatus.DRAFT,
) -> Article:
    """Create a new article."""
    article = Article(
        title=title,
        slug=slug,
        excerpt=excerpt,
        body=body,
        status=status.value,
    )
    db.add(article)
    await db.commit()
    await db.refresh(article)
    return article


async def get_article(db: AsyncSession, article_id: int) -> Article | None:
    """Get an article by ID."""
    result = await db.execute(select(Article).where(Article.id == article_id))
    return result.scalar_one_or_none()


async def get_article_ids_without_image(
    db: AsyncSession, published_only: bool = True
) -> list[int]:
    """Get IDs of articles that have no featured image yet."""
    query = select(Article.id).where(Article.featured_attachment_id.is_(None))
    if published_only:
        query = query.where(Article.status == ArticleStatus.PUBLISHED.value)
    result = await db.execute(query.order_by(Article.id))
    return list(result.scalars().all())
