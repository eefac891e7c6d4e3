"""Main FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from featured_image_helper import __version__
from featured_image_helper.api.routes import router
from featured_image_helper.core.config import settings
from featured_image_helper.core.database import async_session_factory, close_database
from featured_image_helper.core.dependencies import build_services
from featured_image_helper.mcp.server import get_mcp_server
from featured_image_helper.services.options import QUEUE_INTERVAL, as_int, get_option

logger = structlog.get_logger()

scheduler = AsyncIOScheduler()

DEFAULT_QUEUE_INTERVAL_MINUTES = 5
QUEUE_JOB_ID = "process_queue"


async def process_queue() -> None:
    """Periodic task draining one batch of the generation queue."""
    async with async_session_factory() as session:
        services = build_services(session)
        try:
            result = await services.processor.run_once()
        except Exception as e:
            # Keep the job scheduled; the next tick retries
            logger.error("queue_job_failed", error=str(e))
            return

    if result.processed:
        logger.info(
            "queue_job_completed",
            processed=result.processed,
            completed=result.completed,
            failed=result.failed,
            notified=result.notified,
        )

    await sync_queue_interval()


async def cleanup_logs() -> None:
    """Daily task removing diagnostic log entries past retention."""
    async with async_session_factory() as session:
        services = build_services(session)
        removed = await services.activity_log.cleanup_old()
    logger.info("log_cleanup_completed", removed=removed)


async def get_queue_interval_minutes() -> int:
    async with async_session_factory() as session:
        services = build_services(session)
        value = await get_option(services.options, QUEUE_INTERVAL)
    interval = as_int(value, DEFAULT_QUEUE_INTERVAL_MINUTES)
    return interval if interval > 0 else DEFAULT_QUEUE_INTERVAL_MINUTES


async def sync_queue_interval() -> None:
    """Reschedule the queue job when the queue_interval option changed."""
    job = scheduler.get_job(QUEUE_JOB_ID)
    if job is None:
        return
    interval = await get_queue_interval_minutes()
    if job.trigger.interval == timedelta(minutes=interval):
        return
    scheduler.reschedule_job(QUEUE_JOB_ID, trigger="interval", minutes=interval)
    logger.info("queue_interval_changed", queue_interval_minutes=interval)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Featured Image Helper", version=__version__)

    interval = await get_queue_interval_minutes()
    scheduler.add_job(
        process_queue,
        "interval",
        minutes=interval,
        id=QUEUE_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(cleanup_logs, "interval", days=1, id="cleanup_logs")
    scheduler.start()
    logger.info("Scheduler started", queue_interval_minutes=interval)

    yield

    # Shutdown
    scheduler.shutdown()
    await close_database()
    logger.info("Featured Image Helper shutdown complete")


# Create the MCP server app
mcp_server = get_mcp_server()
mcp_app = mcp_server.http_app(path="/mcp")

app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="Generates featured images for articles with Gemini",
    lifespan=lifespan,
)

app.include_router(router)

# Mount the MCP server at /mcp
app.mount("/mcp", mcp_app)


@app.get("/")
async def root() -> dict[str, str]:
    return {"name": settings.app_name, "version": __version__, "docs": "/docs"}
