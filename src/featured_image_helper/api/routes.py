"""API routes for featured image generation and queue management."""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field

from featured_image_helper.core.config import settings
from featured_image_helper.core.database import check_database_connection
from featured_image_helper.core.dependencies import Services, get_services
from featured_image_helper.crud import article as article_crud
from featured_image_helper.services.exceptions import (
    GenerationError,
    InvalidSubjectError,
    NoCredentialError,
)
from featured_image_helper.services.image_queue import DEFAULT_PRIORITY
from featured_image_helper.services.prompt_builder import PromptStyle
from featured_image_helper.services.webhook import (
    ContentEvent,
    handle_content_event,
    verify_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["featured-images"])

ServicesDep = Annotated[Services, Depends(get_services)]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str


class GenerateRequest(BaseModel):
    """Request model for generating an image now."""

    style: PromptStyle | None = None
    custom_prompt: str | None = Field(default=None, max_length=4000)


class GenerateResponse(BaseModel):
    article_id: int
    attachment_id: int


class EnqueueRequest(BaseModel):
    priority: int = Field(default=DEFAULT_PRIORITY, ge=0)


class BulkEnqueueRequest(BaseModel):
    """Request model for queueing several articles."""

    article_ids: list[int] = Field(..., min_length=1)
    priority: int = Field(default=DEFAULT_PRIORITY, ge=0)


class EnqueueResponse(BaseModel):
    added: int
    requested: int


class QueueItemResponse(BaseModel):
    """Response model for a queue item."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    subject_id: int
    status: str
    priority: int
    created_at: datetime
    processed_at: datetime | None


class QueueStatsResponse(BaseModel):
    pending: int
    processing: int
    completed: int
    failed: int
    total: int
    paused: bool


class ClearScope(str, Enum):
    TERMINAL = "terminal"
    ALL = "all"


class ClearResponse(BaseModel):
    removed: int


class BatchResponse(BaseModel):
    """Summary of a manual batch run."""

    processed: int
    completed: int
    failed: int
    notified: bool
    skipped_reason: str | None = None


class LogEntryResponse(BaseModel):
    """Response model for a diagnostic log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    subject_id: int | None
    detail: str
    status: str
    error_message: str
    duration_seconds: float
    created_at: datetime


class ApiTestResponse(BaseModel):
    success: bool
    message: str
    duration_seconds: float | None = None


class CredentialRequest(BaseModel):
    api_key: str = Field(..., max_length=512)


class WebhookResponse(BaseModel):
    """Response for webhook processing."""

    status: str
    message: str


def _raise_http_error(error: GenerationError) -> NoReturn:
    """Translate a generation failure into an HTTP error."""
    if isinstance(error, NoCredentialError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, InvalidSubjectError):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_502_BAD_GATEWAY
    raise HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": str(error)},
    ) from error


@router.get("/health", response_model=HealthResponse)
async def health_check(services: ServicesDep) -> HealthResponse:
    """Health check endpoint."""
    from featured_image_helper import __version__

    connected = await check_database_connection(services.session)
    db_status = "connected" if connected else "disconnected"

    return HealthResponse(status="healthy", version=__version__, database=db_status)


@router.post("/articles/{article_id}/featured-image", response_model=GenerateResponse)
async def generate_featured_image(
    article_id: int,
    services: ServicesDep,
    request: GenerateRequest | None = None,
) -> GenerateResponse:
    """Generate and attach a featured image right away."""
    request = request or GenerateRequest()
    try:
        attachment_id = await services.generator.generate(
            article_id, style=request.style, custom_prompt=request.custom_prompt
        )
    except GenerationError as e:
        _raise_http_error(e)
    return GenerateResponse(article_id=article_id, attachment_id=attachment_id)


@router.post("/queue", response_model=EnqueueResponse)
async def enqueue_articles(request: BulkEnqueueRequest, services: ServicesDep) -> EnqueueResponse:
    """Queue several articles; ones already queued are skipped."""
    added = await services.queue.enqueue_bulk(request.article_ids, request.priority)
    return EnqueueResponse(added=added, requested=len(request.article_ids))


@router.post("/queue/missing", response_model=EnqueueResponse)
async def enqueue_missing(
    services: ServicesDep,
    published_only: Annotated[bool, Query()] = True,
) -> EnqueueResponse:
    """Queue every article that has no featured image."""
    article_ids = await article_crud.get_article_ids_without_image(
        services.session, published_only=published_only
    )
    added = await services.queue.enqueue_bulk(article_ids)
    return EnqueueResponse(added=added, requested=len(article_ids))


@router.get("/queue/stats", response_model=QueueStatsResponse)
async def queue_stats(services: ServicesDep) -> QueueStatsResponse:
    stats = await services.queue.stats()
    return QueueStatsResponse(**stats, paused=await services.queue.is_paused())


@router.get("/queue/items", response_model=list[QueueItemResponse])
async def list_pending_items(
    services: ServicesDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[QueueItemResponse]:
    """List pending items in processing order."""
    items = await services.queue.get_pending(limit)
    return [QueueItemResponse.model_validate(item) for item in items]


@router.delete("/queue/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_queue_item(item_id: int, services: ServicesDep) -> None:
    if not await services.queue.remove(item_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Queue item {item_id} not found",
        )


@router.post("/queue/pause", response_model=QueueStatsResponse)
async def pause_queue(services: ServicesDep) -> QueueStatsResponse:
    await services.queue.pause()
    return await queue_stats(services)


@router.post("/queue/resume", response_model=QueueStatsResponse)
async def resume_queue(services: ServicesDep) -> QueueStatsResponse:
    await services.queue.resume()
    return await queue_stats(services)


@router.post("/queue/clear", response_model=ClearResponse)
async def clear_queue(
    services: ServicesDep,
    scope: Annotated[ClearScope, Query()] = ClearScope.TERMINAL,
) -> ClearResponse:
    """Remove finished items, or everything with scope=all."""
    if scope is ClearScope.ALL:
        removed = await services.queue.clear_all()
    else:
        removed = await services.queue.clear_terminal()
    return ClearResponse(removed=removed)


@router.post("/queue/process", response_model=BatchResponse)
async def process_queue(services: ServicesDep) -> BatchResponse:
    """Run one batch now instead of waiting for the scheduler."""
    result = await services.processor.run_once()
    return BatchResponse(
        processed=result.processed,
        completed=result.completed,
        failed=result.failed,
        notified=result.notified,
        skipped_reason=result.skipped_reason,
    )


# Must follow the static /queue/... routes
@router.post(
    "/queue/{article_id}",
    response_model=QueueItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enqueue_article(
    article_id: int,
    services: ServicesDep,
    request: EnqueueRequest | None = None,
) -> QueueItemResponse:
    """Queue one article for generation."""
    priority = request.priority if request else DEFAULT_PRIORITY
    item = await services.queue.enqueue(article_id, priority)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Article {article_id} is already queued",
        )
    return QueueItemResponse.model_validate(item)


@router.get("/logs", response_model=list[LogEntryResponse])
async def recent_logs(
    services: ServicesDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 3,
    article_id: Annotated[int | None, Query()] = None,
) -> list[LogEntryResponse]:
    """Most recent diagnostic log entries, optionally for one article."""
    if article_id is not None:
        entries = (await services.activity_log.for_subject(article_id))[:limit]
    else:
        entries = await services.activity_log.recent(limit)
    return [LogEntryResponse.model_validate(entry) for entry in entries]


@router.post("/api-test", response_model=ApiTestResponse)
async def test_api_connection(services: ServicesDep) -> ApiTestResponse:
    """Check the Gemini key by generating a small test image."""
    try:
        elapsed = await services.generator.test_connection()
    except GenerationError as e:
        return ApiTestResponse(success=False, message=str(e))
    return ApiTestResponse(
        success=True,
        message="The image model is reachable and returned an image.",
        duration_seconds=round(elapsed, 2),
    )


@router.put("/credentials", status_code=status.HTTP_204_NO_CONTENT)
async def save_credentials(request: CredentialRequest, services: ServicesDep) -> None:
    """Store the Gemini API key."""
    await services.generator.save_api_key(request.api_key)


@router.post("/webhooks/content", response_model=WebhookResponse)
async def content_webhook(request: Request, services: ServicesDep) -> WebhookResponse:
    """Receive publish/update events from the content platform."""
    body = await request.body()

    # Verify signature if webhook secret is configured
    if settings.webhook_secret:
        signature = request.headers.get("X-Signature-256", "")
        if not signature or not verify_signature(body, signature, settings.webhook_secret):
            logger.warning("Rejected content webhook with an invalid signature")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook signature",
            )

    try:
        payload = json.loads(body or b"{}")
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body is not valid JSON",
        ) from e

    event = ContentEvent.from_payload(payload) if isinstance(payload, dict) else None
    if event is None:
        return WebhookResponse(status="ignored", message="not a content event")

    message = await handle_content_event(
        event, services.options, services.content, services.queue
    )
    return WebhookResponse(status="processed", message=message)
