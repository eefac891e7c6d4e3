"""FastMCP server for Featured Image Helper."""

from typing import Any

from fastmcp import FastMCP

from featured_image_helper.core.database import async_session_factory
from featured_image_helper.core.dependencies import build_services
from featured_image_helper.crud import article as article_crud
from featured_image_helper.services.exceptions import GenerationError
from featured_image_helper.services.prompt_builder import PromptStyle

mcp = FastMCP("Featured Image Helper")


@mcp.tool()
async def get_queue_stats() -> dict[str, Any]:
    """Get featured image queue statistics.

    Returns:
        Item counts per status, the total and whether the queue is paused
    """
    async with async_session_factory() as session:
        services = build_services(session)
        stats = await services.queue.stats()
        stats_response: dict[str, Any] = dict(stats)
        stats_response["paused"] = await services.queue.is_paused()
        return stats_response


@mcp.tool()
async def enqueue_articles(
    article_ids: list[int] | None = None,
    missing_only: bool = False,
    priority: int = 0,
) -> dict[str, Any]:
    """Queue articles for featured image generation.

    Args:
        article_ids: Articles to queue
        missing_only: Queue every published article without a featured image instead
        priority: Higher numbers are processed first

    Returns:
        How many articles were added; already queued ones are skipped
    """
    async with async_session_factory() as session:
        services = build_services(session)
        if missing_only:
            article_ids = await article_crud.get_article_ids_without_image(session)
        if not article_ids:
            return {"added": 0, "requested": 0, "message": "No articles to queue."}

        added = await services.queue.enqueue_bulk(article_ids, priority)
        return {
            "added": added,
            "requested": len(article_ids),
            "message": f"Queued {added} of {len(article_ids)} articles.",
        }


@mcp.tool()
async def generate_featured_image(
    article_id: int,
    style: str | None = None,
    custom_prompt: str | None = None,
) -> dict[str, Any]:
    """Generate a featured image for an article immediately.

    Args:
        article_id: Article to generate for
        style: photographic, illustration, abstract or minimal
        custom_prompt: Prompt used as-is instead of a style template

    Returns:
        The new attachment ID, or the error
    """
    async with async_session_factory() as session:
        services = build_services(session)
        try:
            attachment_id = await services.generator.generate(
                article_id,
                style=PromptStyle.from_setting(style) if style else None,
                custom_prompt=custom_prompt,
            )
        except GenerationError as e:
            return {"article_id": article_id, "error": str(e), "code": e.code}

        return {
            "article_id": article_id,
            "attachment_id": attachment_id,
            "message": "Featured image generated and attached.",
        }


@mcp.tool()
async def get_recent_logs(limit: int = 3) -> dict[str, Any]:
    """Get the most recent diagnostic log entries.

    Args:
        limit: Maximum number of entries

    Returns:
        Log entries, newest first
    """
    async with async_session_factory() as session:
        services = build_services(session)
        entries = await services.activity_log.recent(limit)
        return {
            "logs": [
                {
                    "id": entry.id,
                    "article_id": entry.subject_id,
                    "detail": entry.detail,
                    "status": entry.status,
                    "error_message": entry.error_message,
                    "duration_seconds": entry.duration_seconds,
                    "created_at": entry.created_at.isoformat() if entry.created_at else None,
                }
                for entry in entries
            ],
            "count": len(entries),
        }


def get_mcp_server() -> FastMCP:
    """Get the MCP server instance."""
    return mcp
