"""Tests for MCP server tools."""

from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from featured_image_helper.crud import article as article_crud
from featured_image_helper.mcp.server import (
    enqueue_articles,
    generate_featured_image,
    get_mcp_server,
    get_queue_stats,
    get_recent_logs,
)
from featured_image_helper.models.article import ArticleStatus
from featured_image_helper.services.activity_log import ActivityLogger
from featured_image_helper.services.exceptions import NoCredentialError
from featured_image_helper.services.image_generation import ImageGenerationService
from featured_image_helper.services.options import DatabaseOptionStore
from featured_image_helper.services.prompt_builder import PromptStyle

# Access the underlying functions from FastMCP tool wrappers
_get_queue_stats = get_queue_stats.fn
_enqueue_articles = enqueue_articles.fn
_generate_featured_image = generate_featured_image.fn
_get_recent_logs = get_recent_logs.fn


@pytest.fixture
def mcp_session(test_db: AsyncSession) -> Iterator[MagicMock]:
    """Route the tools' sessions to the test database."""
    with patch("featured_image_helper.mcp.server.async_session_factory") as mock_factory:
        mock_factory.return_value.__aenter__ = AsyncMock(return_value=test_db)
        mock_factory.return_value.__aexit__ = AsyncMock(return_value=None)
        yield mock_factory


class TestGetQueueStats:
    async def test_empty_queue(self, mcp_session: MagicMock) -> None:
        result = await _get_queue_stats()

        assert result["total"] == 0
        assert result["pending"] == 0
        assert result["paused"] is False


class TestEnqueueArticles:
    """Tests for the enqueue_articles MCP tool."""

    async def test_enqueue_ids(self, mcp_session: MagicMock) -> None:
        result = await _enqueue_articles(article_ids=[1, 2, 2])

        assert result["added"] == 2
        assert result["requested"] == 3
        stats = await _get_queue_stats()
        assert stats["pending"] == 2

    async def test_nothing_to_queue(self, mcp_session: MagicMock) -> None:
        result = await _enqueue_articles()

        assert result["added"] == 0
        assert "No articles" in result["message"]

    async def test_missing_only(self, mcp_session: MagicMock, test_db: AsyncSession) -> None:
        """Should queue published articles that have no featured image."""
        await article_crud.create_article(
            test_db, "Published", "published", status=ArticleStatus.PUBLISHED
        )
        await article_crud.create_article(test_db, "Draft", "draft")

        result = await _enqueue_articles(missing_only=True, priority=3)

        assert result["added"] == 1
        assert result["requested"] == 1
        assert "Queued 1 of 1" in result["message"]


class TestGenerateFeaturedImage:
    async def test_success(self, mcp_session: MagicMock) -> None:
        with patch.object(
            ImageGenerationService, "generate", AsyncMock(return_value=55)
        ) as mock_generate:
            result = await _generate_featured_image(3, style="abstract")

        assert result["attachment_id"] == 55
        mock_generate.assert_awaited_once_with(
            3, style=PromptStyle.ABSTRACT, custom_prompt=None
        )

    async def test_error_is_returned(self, mcp_session: MagicMock) -> None:
        """Should report generation failures instead of raising."""
        with patch.object(
            ImageGenerationService, "generate", AsyncMock(side_effect=NoCredentialError())
        ):
            result = await _generate_featured_image(3)

        assert result["code"] == "no_api_key"
        assert "not configured" in result["error"]
        assert "attachment_id" not in result


class TestGetRecentLogs:
    async def test_returns_newest_first(
        self, mcp_session: MagicMock, test_db: AsyncSession
    ) -> None:
        activity_log = ActivityLogger(test_db, DatabaseOptionStore(test_db))
        await activity_log.log_api_event("api_test", "first")
        await activity_log.log_api_event("api_key_saved", "API key updated")

        result = await _get_recent_logs(limit=1)

        assert result["count"] == 1
        assert result["logs"][0]["detail"] == "api_key_saved"
        assert result["logs"][0]["article_id"] is None


def test_get_mcp_server() -> None:
    server = get_mcp_server()

    assert server.name == "Featured Image Helper"
